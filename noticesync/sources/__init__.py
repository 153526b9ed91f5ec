from .base import NoticeSource
from .announcements import AnnouncementSource
from .direct import DirectNotificationSource
from .factory import SourceFactory
