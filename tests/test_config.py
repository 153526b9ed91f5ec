import pytest

from noticesync.config.loader import AppConfig
from noticesync.core.exceptions import ConfigError
from noticesync.core.models import SourceCategory

GENERAL_YAML = """
api:
  base_url: https://exams.example.org/api
  student_id: 42
polling:
  interval: 45
read_state:
  rollback_on_failure: true
"""

SOURCES_YAML = """
defaults:
  enabled: true
sources:
  general:
    type: announcements
    category: general
    audience: all
    endpoint: /student/notifications
    ack_endpoint: /announcements/mark-as-read
  direct:
    type: direct
    category: direct-notification
    enabled: false
    endpoint: /general-notifications
    ack_endpoint: /general-notifications/{id}/mark-as-read
"""


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("NOTICESYNC_AUTH_TOKEN", "NOTICESYNC_API_URL", "NOTICESYNC_STUDENT_ID", "NOTICESYNC_POLL_INTERVAL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("noticesync.config.loader.load_dotenv", lambda: None)
    return monkeypatch


def test_load_reads_yaml_and_token_from_env(tmp_path, clean_env):
    (tmp_path / "general.yaml").write_text(GENERAL_YAML)
    (tmp_path / "sources.yaml").write_text(SOURCES_YAML)
    clean_env.setenv("NOTICESYNC_AUTH_TOKEN", "abc123")

    config = AppConfig.load(str(tmp_path))

    assert config.auth_token == "abc123"
    assert config.api.base_url == "https://exams.example.org/api"
    assert config.api.student_id == 42
    assert config.polling.interval == 45
    assert config.badge.timeout == 5.0
    assert config.read_state.rollback_on_failure is True
    assert config.sources["general"].category is SourceCategory.GENERAL
    assert [s.name for s in config.enabled_sources] == ["general"]


def test_env_overrides_yaml(tmp_path, clean_env):
    (tmp_path / "general.yaml").write_text(GENERAL_YAML)
    clean_env.setenv("NOTICESYNC_API_URL", "http://localhost:9000/api")
    clean_env.setenv("NOTICESYNC_STUDENT_ID", "8")
    clean_env.setenv("NOTICESYNC_POLL_INTERVAL", "10")

    config = AppConfig.load(str(tmp_path))

    assert config.api.base_url == "http://localhost:9000/api"
    assert config.api.student_id == 8
    assert config.polling.interval == 10.0


def test_missing_files_fall_back_to_defaults(tmp_path, clean_env):
    config = AppConfig.load(str(tmp_path))

    assert config.auth_token == ""
    assert config.polling.interval == 30.0
    assert set(config.sources) == {"general", "exam", "direct"}
    assert config.sources["direct"].bulk_ack_endpoint == "/general-notifications/mark-all-as-read"


def test_invalid_values_raise_config_error(tmp_path, clean_env):
    clean_env.setenv("NOTICESYNC_STUDENT_ID", "first")
    with pytest.raises(ConfigError):
        AppConfig.load(str(tmp_path))

    with pytest.raises(ConfigError):
        AppConfig.from_dict({"polling": {"interval": 0}}, auth_token="t")
    with pytest.raises(ConfigError):
        AppConfig.from_dict({"polling": {"every": 3}}, auth_token="t")
    with pytest.raises(ConfigError):
        AppConfig.from_dict({"sources": {"x": {"type": "direct", "category": "sms"}}}, auth_token="t")
