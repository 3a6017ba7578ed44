"""
hued: a rule-driven daemon for Hue lighting.

This library provides:
- A rule engine that decides which lighting events run, based on time,
  weekday, host presence and darkness conditions
- Hot reload of YAML configuration
- A Hue bridge client
"""

from hued.config import BridgeConfig, EngineConfig
from hued.rules import RuleEngine, Rule, LightEvent, Scene

__version__ = "0.3.0"

__all__ = [
    "BridgeConfig",
    "EngineConfig",
    "RuleEngine",
    "Rule",
    "LightEvent",
    "Scene",
]
