from .notice import CATEGORY_ORDER, Notice, NoticeKey, Priority, SourceCategory
