from typing import Dict, Type, Optional

from noticesync.config.loader import SourceConfig
from noticesync.core.http_client import HttpClient
from noticesync.sources.base import NoticeSource
from noticesync.sources.announcements import AnnouncementSource
from noticesync.sources.direct import DirectNotificationSource


class SourceFactory:
    """Factory for creating notice sources"""

    _registry: Dict[str, Type[NoticeSource]] = {
        "announcements": AnnouncementSource,
        "direct": DirectNotificationSource,
    }

    @classmethod
    def create(
            cls,
            config: SourceConfig,
            http_client: HttpClient,
            student_id: Optional[int] = None
    ) -> NoticeSource:
        """Create source for a config entry"""
        source_class = cls._registry.get(config.type.lower())
        if not source_class:
            raise ValueError(f"Unknown source type: {config.type}")

        return source_class(config, http_client, student_id)

    @classmethod
    def register(cls, name: str, source_class: Type[NoticeSource]):
        """Register new source type"""
        cls._registry[name.lower()] = source_class
