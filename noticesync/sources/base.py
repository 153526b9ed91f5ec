import json
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any

from loguru import logger

from noticesync.config.loader import SourceConfig
from noticesync.core.exceptions import MalformedResponse
from noticesync.core.http_client import HttpClient
from noticesync.core.models import Notice, SourceCategory
from noticesync.utils.tools import convert_date_to_timestamp


class NoticeSource(ABC):
    """Fetches one upstream endpoint and normalizes it into Notices.

    Sources are stateless: every fetch returns the complete current snapshot
    of the category, never a delta, and failures are raised as FetchError
    subclasses without retrying.
    """

    supports_bulk_ack = False

    def __init__(self, config: SourceConfig, http_client: HttpClient, student_id: Optional[int] = None):
        self.name = config.name
        self.category: SourceCategory = config.category
        self.endpoint = config.endpoint
        self.ack_endpoint = config.ack_endpoint
        self.params = config.params
        self.student_id = student_id

        self.http = http_client
        self._log = logger.bind(source=self.name, component="source")

    def build_params(self) -> Dict[str, str]:
        return {k: str(v) for k, v in self.params.items() if v is not None}

    async def fetch_raw_data(self) -> Any:
        return await self.http.get(self.endpoint, source=self.name, params=self.build_params())

    def extract_items(self, raw_data: Any) -> List[Dict]:
        """Accept a bare JSON array or a {"data": [...]} envelope"""
        if isinstance(raw_data, dict) and isinstance(raw_data.get("data"), list):
            raw_data = raw_data["data"]

        if not isinstance(raw_data, list):
            raise MalformedResponse(f"Expected a list of records, got {type(raw_data).__name__}", self.name)

        return [item for item in raw_data if isinstance(item, dict)]

    def accepts(self, item: Dict) -> bool:
        return True

    async def fetch(self) -> List[Notice]:
        """Main fetch method"""
        raw_data = await self.fetch_raw_data()
        items = self.extract_items(raw_data)

        notices = []
        for item in items:
            if not self.accepts(item):
                continue
            try:
                if notice := self.parse_notice(item):
                    notices.append(notice)
            except (TypeError, ValueError) as e:
                self._log.warning(f"Parse error: {e} | {item.get('id')}")

        self._log.debug(f"Fetched {len(notices)} / {len(items)} records")
        return notices

    def parse_notice(self, item: Dict[str, Any]) -> Optional[Notice]:
        source_id = self.extract_source_id(item)
        if source_id is None:
            self._log.warning(f"Record without a valid id skipped: {item.get('title')!r}")
            return None

        return Notice(
            id=source_id,
            title=str(item.get("title") or ""),
            message=str(item.get("message") or ""),
            source_category=self.category,
            published_at_ms=self.extract_timestamp(item),
            read=self.as_bool(item.get("is_read")),
            related_exam_id=self.as_int(item.get("exam_id")),
            exam_title=item.get("exam_title") or None,
            exam_code=item.get("exam_code") or None,
            **self.extract_metadata(item),
        )

    def extract_source_id(self, item: Dict) -> Optional[int]:
        return self.as_int(item.get("id"))

    def extract_timestamp(self, item: Dict) -> int:
        return convert_date_to_timestamp(item.get("created_at")) or 0

    @abstractmethod
    def extract_metadata(self, item: Dict) -> Dict[str, Any]:
        """Source-specific optional Notice fields"""
        pass

    @abstractmethod
    async def acknowledge(self, notice_id: int) -> None:
        """Send a read receipt for one notice"""
        pass

    async def acknowledge_all(self) -> None:
        raise NotImplementedError(f"{self.name} has no bulk read endpoint")

    @staticmethod
    def as_int(value) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def as_bool(value) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return bool(value)

    @staticmethod
    def as_tags(value) -> List[str]:
        if not value:
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                value = value.split(",")
        if not isinstance(value, list):
            return []
        return [str(tag).strip() for tag in value if str(tag).strip()]
