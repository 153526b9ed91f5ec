import os
import copy
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

import yaml
from dotenv import load_dotenv

from noticesync.core.exceptions import ConfigError
from noticesync.core.models import SourceCategory


@dataclass
class ApiConfig:
    """Upstream REST API settings"""
    base_url: str = "http://localhost:8000/api"
    student_id: Optional[int] = None
    timeout: float = 20.0


@dataclass
class PollingConfig:
    interval: float = 30.0
    jitter_percent: float = 0.0


@dataclass
class BadgeConfig:
    timeout: float = 5.0


@dataclass
class ReadStateConfig:
    """Read receipt policy"""
    rollback_on_failure: bool = False
    retry_attempts: int = 3
    retry_wait: float = 0.5


@dataclass
class SourceConfig:
    """Configuration for a single notice source"""
    name: str
    type: str
    category: SourceCategory
    endpoint: str
    ack_endpoint: str
    enabled: bool = True
    audience: Optional[str] = None
    bulk_ack_endpoint: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AppConfig:
    """Main application configuration"""
    auth_token: str
    api: ApiConfig = field(default_factory=ApiConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    badge: BadgeConfig = field(default_factory=BadgeConfig)
    read_state: ReadStateConfig = field(default_factory=ReadStateConfig)
    sources: Dict[str, SourceConfig] = field(default_factory=dict)
    logging: Dict[str, Any] = field(default_factory=dict)

    @property
    def enabled_sources(self) -> List[SourceConfig]:
        return [source for source in self.sources.values() if source.enabled]

    @classmethod
    def load(cls, config_dir: str = "config") -> 'AppConfig':
        """Load YAML files from config_dir, then apply environment overrides"""
        load_dotenv()
        config_path = Path(config_dir)

        general = cls._load_yaml(config_path / "general.yaml")
        sources = cls._load_yaml(config_path / "sources.yaml")

        data = cls._merge_configs(general, {"sources": sources.get("sources", {}),
                                            "source_defaults": sources.get("defaults", {})})
        data = cls._apply_env(data)

        return cls.from_dict(data, auth_token=os.getenv("NOTICESYNC_AUTH_TOKEN", ""))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], auth_token: str = "") -> 'AppConfig':
        """Build a config from plain dicts; missing sections use defaults"""
        data = data or {}

        try:
            api = ApiConfig(**data.get("api", {}))
            polling = PollingConfig(**data.get("polling", {}))
            badge = BadgeConfig(**data.get("badge", {}))
            read_state = ReadStateConfig(**data.get("read_state", {}))
        except TypeError as e:
            raise ConfigError(f"Unknown config option: {e}") from e

        if polling.interval <= 0:
            raise ConfigError(f"polling.interval must be positive, got {polling.interval}")
        if badge.timeout < 0:
            raise ConfigError(f"badge.timeout must not be negative, got {badge.timeout}")

        source_defaults = data.get("source_defaults", {})
        raw_sources = data.get("sources") or DEFAULT_SOURCES
        sources = {
            name: cls._parse_source_config(name, cls._merge_configs(source_defaults, raw))
            for name, raw in raw_sources.items()
        }

        return cls(
            auth_token=auth_token or data.get("auth_token", ""),
            api=api,
            polling=polling,
            badge=badge,
            read_state=read_state,
            sources=sources,
            logging=data.get("logging", {}),
        )

    @classmethod
    def _parse_source_config(cls, name: str, config: Dict) -> SourceConfig:
        """Parse individual source configuration"""
        try:
            return SourceConfig(
                name=name,
                type=config["type"],
                category=SourceCategory.parse(config["category"]),
                endpoint=config["endpoint"],
                ack_endpoint=config["ack_endpoint"],
                enabled=config.get("enabled", True),
                audience=config.get("audience"),
                bulk_ack_endpoint=config.get("bulk_ack_endpoint"),
                params=config.get("params", {}) or {},
            )
        except KeyError as e:
            raise ConfigError(f"Source '{name}' is missing required option {e}") from e
        except ValueError as e:
            raise ConfigError(f"Source '{name}': {e}") from e

    @staticmethod
    def _apply_env(data: Dict) -> Dict:
        """Environment variables override YAML values"""
        result = copy.deepcopy(data)
        api = result.setdefault("api", {})
        polling = result.setdefault("polling", {})

        if base_url := os.getenv("NOTICESYNC_API_URL"):
            api["base_url"] = base_url
        if student_id := os.getenv("NOTICESYNC_STUDENT_ID"):
            try:
                api["student_id"] = int(student_id)
            except ValueError as e:
                raise ConfigError("NOTICESYNC_STUDENT_ID must be an integer") from e
        if interval := os.getenv("NOTICESYNC_POLL_INTERVAL"):
            try:
                polling["interval"] = float(interval)
            except ValueError as e:
                raise ConfigError("NOTICESYNC_POLL_INTERVAL must be a number") from e

        return result

    @classmethod
    def _merge_configs(cls, defaults: Dict, specific: Dict) -> Dict:
        """Deep merge defaults with specific config"""
        result = copy.deepcopy(defaults)

        for key, value in specific.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = cls._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def _load_yaml(path: Path) -> Dict:
        """Load a YAML file"""
        if not path.exists():
            return {}

        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}


DEFAULT_SOURCES: Dict[str, Dict[str, Any]] = {
    "general": {
        "type": "announcements",
        "category": SourceCategory.GENERAL.value,
        "audience": "all",
        "endpoint": "/student/notifications",
        "ack_endpoint": "/announcements/mark-as-read",
    },
    "exam": {
        "type": "announcements",
        "category": SourceCategory.EXAM.value,
        "audience": "exam-specific",
        "endpoint": "/student/notifications",
        "ack_endpoint": "/announcements/mark-as-read",
    },
    "direct": {
        "type": "direct",
        "category": SourceCategory.DIRECT.value,
        "endpoint": "/general-notifications",
        "ack_endpoint": "/general-notifications/{id}/mark-as-read",
        "bulk_ack_endpoint": "/general-notifications/mark-all-as-read",
    },
}
