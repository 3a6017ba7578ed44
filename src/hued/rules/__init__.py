"""
Rule engine for hued.

Decides, once per pass, which lighting events should run.

Features:
- Events (target + light state) and scenes (ordered events)
- Rules binding conditions to events or a scene, with priority and
  trigger (fire once per span of validity) semantics
- Time window, weekday, host reachability and darkness conditions,
  each negatable with a leading "^"
- Hot reload of events/scenes/rules when their files change
- Bounded retry of events whose lights are off

Architecture:
    ┌──────────────────────────────────────────┐
    │                RuleEngine                │
    │   registries ─ loader ─ ConfigSource     │
    │       │                                  │
    │       ├── ConditionEvaluator ─ SunDataCache
    │       │                     └─ HostProbe │
    │       └── EventExecutor ─ LightingService│
    └──────────────────────────────────────────┘
"""

from .models import (
    # Enums
    ConditionKind,
    ExecutionOutcome,
    # Conditions
    ConditionSpec,
    # Events and scenes
    LightEvent,
    Scene,
    # Rule targets
    EventList,
    SceneRef,
    RuleTarget,
    # Rule
    Rule,
    PassResult,
)
from .registry import Registry
from .sun import SunTimes, SunDataSource, SunriseSunsetClient, SunDataCache
from .evaluators import (
    ConditionEvaluator,
    HostProbe,
    PingProbe,
    parse_time_expression,
)
from .executor import EventExecutor, MAX_RETRIES
from .loader import ConfigSource, load_events, load_scenes, load_rules
from .engine import RuleEngine

__all__ = [
    # Engine
    "RuleEngine",
    # Evaluation
    "ConditionEvaluator",
    "HostProbe",
    "PingProbe",
    "parse_time_expression",
    # Sun data
    "SunTimes",
    "SunDataSource",
    "SunriseSunsetClient",
    "SunDataCache",
    # Execution
    "EventExecutor",
    "MAX_RETRIES",
    # Loading
    "ConfigSource",
    "Registry",
    "load_events",
    "load_scenes",
    "load_rules",
    # Enums
    "ConditionKind",
    "ExecutionOutcome",
    # Models
    "ConditionSpec",
    "LightEvent",
    "Scene",
    "EventList",
    "SceneRef",
    "RuleTarget",
    "Rule",
    "PassResult",
]
