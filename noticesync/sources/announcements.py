from typing import Dict, Any

from noticesync.core.models import Priority
from noticesync.sources.base import NoticeSource
from noticesync.utils.tools import convert_date_to_timestamp


class AnnouncementSource(NoticeSource):
    """Student announcements, split client-side by audience.

    The endpoint returns every announcement visible to the student; each
    instance keeps only the records whose audience it owns ("all" for
    general announcements, "exam-specific" for exam announcements).
    """

    def __init__(self, config, http_client, student_id=None):
        super().__init__(config, http_client, student_id)
        self.audience = (config.audience or "all").lower()

    def build_params(self) -> Dict[str, str]:
        params = super().build_params()
        if self.student_id is not None:
            params.setdefault("student_id", str(self.student_id))
        return params

    def accepts(self, item: Dict) -> bool:
        audience = str(item.get("audience") or "all").lower()
        return audience == self.audience

    def extract_timestamp(self, item: Dict) -> int:
        published = convert_date_to_timestamp(item.get("publish_date"))
        if published is not None:
            return published
        return super().extract_timestamp(item)

    def extract_metadata(self, item: Dict) -> Dict[str, Any]:
        return {
            "audience": item.get("audience") or None,
            "priority": Priority.parse(item.get("priority")),
            "category": item.get("category") or None,
            "tags": self.as_tags(item.get("tags")),
            "expires_at_ms": convert_date_to_timestamp(item.get("expiry_date")),
            "is_pinned": self.as_bool(item.get("is_pinned")),
        }

    async def acknowledge(self, notice_id: int) -> None:
        await self.http.post(self.ack_endpoint, source=self.name, json={"announcement_id": notice_id})
