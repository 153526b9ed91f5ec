from typing import Optional, List, Sequence


class NoticeSyncError(Exception):
    """Base error for the notice engine"""


class ConfigError(NoticeSyncError):
    pass


class MissingTokenError(NoticeSyncError):
    """No bearer token was supplied; the engine cannot operate"""


class FetchError(NoticeSyncError):
    """A source failed to deliver its snapshot"""

    def __init__(self, message: str, source: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.status = status

    def __str__(self):
        text = super().__str__()
        if self.status is not None:
            text = f"[{self.status}] {text}"
        if self.source:
            text = f"{self.source}: {text}"
        return text


class Unauthorized(FetchError):
    pass


class ServerError(FetchError):
    pass


class MalformedResponse(FetchError):
    pass


class NetworkError(FetchError):
    pass


class AcknowledgementError(NoticeSyncError):
    """One or more read receipts were not accepted by the server"""

    def __init__(self, keys: Sequence, causes: Sequence[BaseException]):
        self.keys: List = list(keys)
        self.causes: List[BaseException] = list(causes)
        summary = "; ".join(str(c) for c in self.causes[:3])
        super().__init__(f"{len(self.keys)} read receipt(s) failed: {summary}")


class UnknownNoticeError(NoticeSyncError, KeyError):
    """The notice (or its category's source) is not part of the collection"""

    def __str__(self):
        return Exception.__str__(self)
