"""
Data models for the rule engine.

Defines events, scenes, condition specs and rules, and how they are built
from their YAML representation.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

from hued.exceptions import RuleDefinitionError
from hued.lighting.adapter import LightTarget

if TYPE_CHECKING:
    from .executor import EventExecutor
    from .registry import Registry

logger = logging.getLogger(__name__)

NEGATION_MARKER = "^"


# =============================================================================
# Enums
# =============================================================================


class ConditionKind(Enum):
    """Types of conditions a rule can test."""

    FROM = "from"  # Now is at or after a time
    UNTIL = "until"  # Now is at or before a time
    AT = "at"  # Now is within the minute starting at a time
    FOUND_HOST = "found host"  # Host answers a ping
    WEEKDAY = "weekday"  # Today is one of the listed days
    DARK_AT = "dark_at"  # It is dark at a location (with twilight)
    UNKNOWN = "unknown"  # Unrecognised kind or form

    @classmethod
    def from_name(cls, name: str) -> "ConditionKind":
        return _KIND_ALIASES.get(name, cls.UNKNOWN)


_KIND_ALIASES = {
    "from": ConditionKind.FROM,
    "until": ConditionKind.UNTIL,
    "at": ConditionKind.AT,
    "found host": ConditionKind.FOUND_HOST,
    "weekday": ConditionKind.WEEKDAY,
    "weekdays": ConditionKind.WEEKDAY,
    "dark_at": ConditionKind.DARK_AT,
}


class ExecutionOutcome(Enum):
    """Result of executing a single event."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"  # Device off, may be retried
    FATAL_FAILURE = "fatal_failure"  # Other lighting error, not retried
    EXHAUSTED = "exhausted"  # Transient failure persisted through all retries


# =============================================================================
# Conditions
# =============================================================================


@dataclass(frozen=True)
class ConditionSpec:
    """One condition of a rule, e.g. {"^weekdays": "sat, sun"}."""

    kind: ConditionKind
    value: Any = None
    negated: bool = False
    raw_kind: str = ""  # Kind as written in the config, for logging

    @classmethod
    def from_config(cls, entry: Any) -> "ConditionSpec":
        """
        Parse a condition entry.

        A condition is a single-key mapping of kind to value. The kind may be
        prefixed with "^" to negate it. Anything else becomes an UNKNOWN spec
        so that it is reported (and fails) at evaluation time.
        """
        if not isinstance(entry, dict) or len(entry) != 1:
            return cls(kind=ConditionKind.UNKNOWN, value=entry, raw_kind=repr(entry))

        name, value = next(iter(entry.items()))
        name = str(name)
        negated = name.startswith(NEGATION_MARKER)
        if negated:
            name = name[len(NEGATION_MARKER):]

        return cls(
            kind=ConditionKind.from_name(name),
            value=value,
            negated=negated,
            raw_kind=name,
        )

    def __str__(self) -> str:
        prefix = NEGATION_MARKER if self.negated else ""
        return f"{prefix}{self.raw_kind or self.kind.value}: {self.value}"


# =============================================================================
# Events and Scenes
# =============================================================================


TARGET_KEYS = ("group", "light", "bulb")


def _parse_target(params: Dict[str, Any]) -> LightTarget:
    if "light" in params:
        return LightTarget.light(params["light"])
    if "bulb" in params:
        return LightTarget.light(params["bulb"])
    if "group" in params:
        return LightTarget.group(params["group"])
    # Group 0 addresses every light on the bridge
    return LightTarget.group(0)


@dataclass(frozen=True)
class LightEvent:
    """A named light action: a target and the state to apply to it."""

    name: Optional[str]
    target: LightTarget
    actions: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, name: Optional[str], params: Any) -> "LightEvent":
        """
        Build an event from its parameters.

        Accepts either {"group": ..., "actions": {...}} or flat parameters in
        which every non-target key is an action. "on" defaults to True.
        """
        if not isinstance(params, dict):
            raise RuleDefinitionError(f"Event {name!r} must be a mapping, got {params!r}")

        if "actions" in params:
            actions = dict(params["actions"] or {})
        else:
            actions = {k: v for k, v in params.items() if k not in TARGET_KEYS and k != "name"}

        if actions.get("on") is None:
            actions["on"] = True

        return cls(
            name=params.get("name", name),
            target=_parse_target(params),
            actions=actions,
        )

    def __hash__(self) -> int:
        return hash((self.name, self.target))


@dataclass(frozen=True)
class Scene:
    """A named, ordered sequence of events."""

    name: str
    sequence: Tuple[LightEvent, ...] = ()

    @classmethod
    def from_config(cls, name: str, entries: Any) -> "Scene":
        if not isinstance(entries, list):
            raise RuleDefinitionError(f"Scene {name!r} must be a list of events")
        return cls(
            name=name,
            sequence=tuple(LightEvent.from_config(None, params) for params in entries),
        )


# =============================================================================
# Rule targets
# =============================================================================


@dataclass(frozen=True)
class EventList:
    """Rule target: a list of named events."""

    events: Tuple[LightEvent, ...] = ()

    def resolve(self) -> List[LightEvent]:
        return list(self.events)


@dataclass(frozen=True)
class SceneRef:
    """Rule target: a scene, bound at load time (None if it was not found)."""

    name: str
    scene: Optional[Scene] = None

    def resolve(self) -> List[LightEvent]:
        if self.scene is None:
            return []
        return list(self.scene.sequence)


RuleTarget = Union[EventList, SceneRef]


# =============================================================================
# Rule
# =============================================================================


@dataclass
class Rule:
    """
    A rule binds conditions to events or a scene.

    State:
    - validity: result of the last condition evaluation
    - triggered: whether a trigger rule already fired in its current span
      of validity
    """

    name: str
    conditions: List[ConditionSpec]
    target: RuleTarget
    trigger: bool = True
    priority: int = 0
    validity: bool = field(default=False, compare=False)
    triggered: bool = field(default=False, compare=False)

    @classmethod
    def from_config(
        cls,
        name: str,
        entry: Any,
        events: "Registry[LightEvent]",
        scenes: "Registry[Scene]",
    ) -> "Rule":
        """
        Build a rule from its rules.yml entry.

        Raises:
            RuleDefinitionError: if the entry is malformed, or it names both
                or neither of events/scene
        """
        if not isinstance(entry, dict):
            raise RuleDefinitionError(f"Rule {name!r} must be a mapping")

        has_events = entry.get("events") is not None
        has_scene = entry.get("scene") is not None
        if has_events == has_scene:
            raise RuleDefinitionError(
                f"Rule {name!r} must name either events or a scene (not both, not neither)"
            )

        target: RuleTarget
        if has_events:
            event_names = entry["events"]
            if isinstance(event_names, str):
                event_names = [event_names]
            bound = []
            for event_name in event_names:
                event = events.get(event_name)
                if event is None:
                    logger.warning(
                        f'Could not find event "{event_name}" for rule "{name}", ignoring!'
                    )
                else:
                    bound.append(event)
            target = EventList(events=tuple(bound))
        else:
            scene_name = entry["scene"]
            scene = scenes.get(scene_name)
            if scene is None:
                logger.warning(
                    f'Could not find scene "{scene_name}" for rule "{name}", ignoring!'
                )
            target = SceneRef(name=scene_name, scene=scene)

        trigger = entry.get("trigger")
        return cls(
            name=name,
            conditions=[ConditionSpec.from_config(c) for c in entry.get("conditions") or []],
            target=target,
            trigger=True if trigger is None else bool(trigger),
            priority=int(entry.get("priority") or 0),
        )

    def update_validity(self, valid: bool) -> bool:
        """
        Record a new validity.

        A trigger rule that goes from valid to invalid is re-armed.
        """
        previous = self.validity
        self.validity = valid
        if self.trigger and previous and not valid:
            self.triggered = False
        return valid

    def should_execute(self) -> bool:
        """Whether an active rule needs to run this pass."""
        return not (self.trigger and self.triggered)

    def execute(self, executor: "EventExecutor") -> List[ExecutionOutcome]:
        """
        Execute the rule's events in order.

        Marks the rule triggered first. One event failing (or exhausting its
        retries) does not stop the following events.
        """
        self.triggered = True

        if isinstance(self.target, SceneRef):
            if self.target.scene is None:
                logger.info(f"No scene found for rule \"{self.name}\", skipping execution")
                return []
            logger.info(f"Executing scene: {self.target.name}")
        events = self.target.resolve()

        outcomes = []
        for idx, event in enumerate(events):
            if event.name:
                logger.info(f"Executing event: {event.name}!")
            else:
                logger.info(f"Executing event {idx}")
            outcomes.append(executor.run(event))
        return outcomes


# =============================================================================
# Pass result
# =============================================================================


@dataclass
class PassResult:
    """Result of one evaluate-and-execute pass."""

    rules_evaluated: int = 0
    rules_valid: int = 0
    rules_active: int = 0
    rules_executed: int = 0
    rules_skipped: int = 0  # Active trigger rules that had already fired
    active_priority: Optional[int] = None
    executed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
