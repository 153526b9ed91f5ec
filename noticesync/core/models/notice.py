from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Tuple


class SourceCategory(str, Enum):
    """Unified notice categories across all sources"""
    GENERAL = "general-announcement"
    EXAM = "exam-announcement"
    DIRECT = "direct-notification"

    @classmethod
    def parse(cls, value) -> 'SourceCategory':
        if isinstance(value, cls):
            return value

        text = str(value).strip().lower()
        for category in cls:
            if text in (category.value, category.name.lower()):
                return category
        raise ValueError(f"Unknown source category: {value}")


# Fixed merge/display order of the categories
CATEGORY_ORDER = (SourceCategory.GENERAL, SourceCategory.EXAM, SourceCategory.DIRECT)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]

    @classmethod
    def parse(cls, value) -> Optional['Priority']:
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


_PRIORITY_RANKS = {Priority.LOW: 0, Priority.MEDIUM: 1, Priority.HIGH: 2, Priority.URGENT: 3}

NoticeKey = Tuple[SourceCategory, int]


@dataclass
class Notice:
    id: int
    title: str
    message: str
    source_category: SourceCategory
    published_at_ms: int
    read: bool = False
    audience: Optional[str] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    expires_at_ms: Optional[int] = None
    is_pinned: bool = False
    related_exam_id: Optional[int] = None
    exam_title: Optional[str] = None
    exam_code: Optional[str] = None

    @property
    def key(self) -> NoticeKey:
        """Identity of a notice; raw ids are only unique per category"""
        return self.source_category, self.id

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at_ms is not None and self.expires_at_ms < now_ms

    def __hash__(self):
        return hash(self.key)
