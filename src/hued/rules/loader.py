"""
Loading events, scenes and rules from YAML files.

Each loader builds a complete new set of objects or raises; callers swap
the result in only on success.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List

import yaml

from hued.exceptions import ConfigError

from .models import LightEvent, Rule, Scene
from .registry import Registry

logger = logging.getLogger(__name__)

_TIME_OF_DAY = re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?$")


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that keeps clock times such as 22:00 as strings.

    Plain YAML 1.1 reads 22:00 as the base-60 integer 1320.
    """


ConfigLoader.yaml_implicit_resolvers = {
    first: list(resolvers)
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
for _digit in "0123456789":
    ConfigLoader.yaml_implicit_resolvers.setdefault(_digit, []).insert(
        0, ("tag:yaml.org,2002:str", _TIME_OF_DAY)
    )


class ConfigSource:
    """A YAML file backing one category of configuration."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def mtime(self) -> float:
        return self.path.stat().st_mtime

    def load(self) -> Dict[str, Any]:
        """
        Parse the file.

        Returns:
            Top-level mapping (empty for an empty file)

        Raises:
            ConfigError: if the file cannot be read, is not valid YAML or its
                top level is not a mapping
        """
        try:
            with self.path.open() as f:
                data = yaml.load(f, Loader=ConfigLoader)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read {self.path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.path} must contain a mapping, got {type(data).__name__}")
        return data

    def __str__(self) -> str:
        return str(self.path)


def load_events(data: Dict[str, Any]) -> Dict[str, LightEvent]:
    """Build events from an events.yml mapping of name to parameters."""
    return {str(name): LightEvent.from_config(str(name), params) for name, params in data.items()}


def load_scenes(data: Dict[str, Any]) -> Dict[str, Scene]:
    """Build scenes from a scenes.yml mapping of name to inline events."""
    return {str(name): Scene.from_config(str(name), entries) for name, entries in data.items()}


def load_rules(
    data: Dict[str, Any],
    events: Registry[LightEvent],
    scenes: Registry[Scene],
) -> List[Rule]:
    """Build rules from a rules.yml mapping, binding events and scenes by name."""
    return [Rule.from_config(str(name), entry, events, scenes) for name, entry in data.items()]
