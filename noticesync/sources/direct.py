from typing import Dict, Any, Optional

from noticesync.sources.base import NoticeSource


class DirectNotificationSource(NoticeSource):
    """Notifications addressed to the student (or to everyone via is_for_all)"""

    supports_bulk_ack = True

    def __init__(self, config, http_client, student_id=None):
        super().__init__(config, http_client, student_id)
        self.bulk_ack_endpoint: Optional[str] = config.bulk_ack_endpoint
        self.supports_bulk_ack = bool(self.bulk_ack_endpoint)

    def extract_metadata(self, item: Dict) -> Dict[str, Any]:
        return {
            "audience": "all" if self.as_bool(item.get("is_for_all")) else None,
        }

    async def acknowledge(self, notice_id: int) -> None:
        await self.http.post(self.ack_endpoint.format(id=notice_id), source=self.name)

    async def acknowledge_all(self) -> None:
        if not self.bulk_ack_endpoint:
            return await super().acknowledge_all()
        await self.http.post(self.bulk_ack_endpoint, source=self.name)
