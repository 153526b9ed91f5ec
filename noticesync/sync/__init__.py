from .merge import MergeResult, merge
from .filters import FilterState
from .poller import Poller, TickKind
from .badge import BadgeController
from .read_state import ReadStateStore, read_counts, unread_count
