"""Shared fixtures: an in-memory HTTP double and payload factories."""
import copy

import pytest

from noticesync.config.loader import AppConfig
from noticesync.orchestrator import NoticeEngine

ANNOUNCEMENTS = "/student/notifications"
DIRECT = "/general-notifications"


class FakeHttp:
    """Stands in for HttpClient: canned GET payloads, recorded POSTs"""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.post_failures = {}
        self.gets = []
        self.posts = []

    async def get(self, path, source=None, **kwargs):
        self.gets.append((path, kwargs.get("params")))
        response = self.responses.get(path, [])
        if isinstance(response, BaseException):
            raise response
        return copy.deepcopy(response)

    async def post(self, path, source=None, **kwargs):
        self.posts.append((path, kwargs.get("json")))
        failure = self.post_failures.get(path)
        if failure is not None:
            raise failure
        return None

    async def close(self):
        pass


def announcement(id, audience="all", **fields):
    record = {
        "id": id,
        "title": f"Announcement {id}",
        "message": f"Body of announcement {id}",
        "audience": audience,
        "created_at": "2026-10-01T09:00:00Z",
        "is_read": False,
    }
    record.update(fields)
    return record


def direct_notification(id, **fields):
    record = {
        "id": id,
        "title": f"Notification {id}",
        "message": f"Body of notification {id}",
        "is_for_all": True,
        "created_at": "2026-10-01T09:00:00Z",
        "is_read": False,
    }
    record.update(fields)
    return record


@pytest.fixture
def config():
    return AppConfig.from_dict(
        {
            "api": {"student_id": 7},
            "polling": {"interval": 0.05},
            "badge": {"timeout": 0.1},
            "read_state": {"retry_attempts": 2, "retry_wait": 0},
        },
        auth_token="test-token",
    )


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def engine(config, fake_http):
    return NoticeEngine(config, http_client=fake_http)
