"""
Configuration for the hued daemon.

All configuration lives in YAML files inside one directory:
- bridge.yml: bridge address and user token
- events.yml: named light events (optional)
- scenes.yml: named sequences of inline events (optional)
- rules.yml: rules (mandatory)
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from hued.exceptions import ConfigError

logger = logging.getLogger(__name__)

BRIDGE_FILE = "bridge.yml"
EVENTS_FILE = "events.yml"
SCENES_FILE = "scenes.yml"
RULES_FILE = "rules.yml"


@dataclass(frozen=True)
class BridgeConfig:
    """Bridge connection settings."""

    ip: Optional[str] = None
    user: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.ip and self.user)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeConfig":
        return cls(ip=data.get("ip"), user=data.get("user"))

    @classmethod
    def from_file(cls, path: Path) -> "BridgeConfig":
        """
        Read bridge.yml.

        A missing file is tolerated: an unconfigured BridgeConfig is returned
        and every bridge call will fail until the file is provided.
        """
        if not path.exists():
            logger.warning(f"No bridge configuration found at {path}")
            return cls()
        try:
            with path.open() as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")
        return cls.from_dict(data)


@dataclass
class EngineConfig:
    """Runtime options of the daemon."""

    config_dir: Path = Path(".")
    interval: float = 5.0  # Seconds between evaluation passes
    debug: bool = False
    hue_debug: bool = False  # Show bridge/HTTP client logging
    blink: bool = False  # Blink each light when it is discovered
    ping_timeout: float = 3.0
    sun_timeout: float = 10.0

    @property
    def bridge_path(self) -> Path:
        return self.config_dir / BRIDGE_FILE

    @property
    def events_path(self) -> Path:
        return self.config_dir / EVENTS_FILE

    @property
    def scenes_path(self) -> Path:
        return self.config_dir / SCENES_FILE

    @property
    def rules_path(self) -> Path:
        return self.config_dir / RULES_FILE
