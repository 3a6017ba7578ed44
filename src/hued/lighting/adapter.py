"""
Lighting service interface.

The rule engine only talks to lights through this interface. A concrete
implementation (the Hue bridge client) translates these calls to the bridge
protocol; tests use MockLightingService.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from hued.exceptions import HuedError


class LightingError(HuedError):
    """Any failure reported by the lighting service."""


class DeviceOffError(LightingError):
    """A light is off or unreachable, so the requested state was not applied.

    This is the transient condition the executor retries on.
    """


class BridgeNotConfiguredError(LightingError):
    """No bridge address/user is configured."""


@dataclass(frozen=True)
class LightTarget:
    """Reference to a group or a single light, by name or bridge id."""

    kind: str  # "group" or "light"
    ref: str

    @classmethod
    def group(cls, ref: Any) -> "LightTarget":
        return cls(kind="group", ref=str(ref))

    @classmethod
    def light(cls, ref: Any) -> "LightTarget":
        return cls(kind="light", ref=str(ref))

    def __str__(self) -> str:
        return f"{self.kind} {self.ref}"


@dataclass
class Light:
    """A single bulb known to the bridge."""

    id: str
    name: str
    state: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Group:
    """A bridge group and the ids of its member lights."""

    id: str
    name: str
    light_ids: List[str] = field(default_factory=list)


class LightingService(ABC):
    """
    Abstract interface for light control.

    Capabilities:
    - get_lights / get_groups: enumerate bulbs and groups
    - refresh: re-read light state from the bridge
    - apply_state: set power/color state of a light or group
    - power_off: switch a light or all members of a group off
    - alert: blink a light once (used for discovery)

    Implementations raise DeviceOffError for the "device off/unreachable"
    condition and LightingError for everything else.
    """

    @abstractmethod
    def get_lights(self) -> List[Light]:
        pass

    @abstractmethod
    def get_groups(self) -> List[Group]:
        pass

    @abstractmethod
    def refresh(self) -> List[Light]:
        """Re-read all lights and return them."""
        pass

    @abstractmethod
    def apply_state(self, target: LightTarget, actions: Dict[str, Any]) -> None:
        """
        Apply a light state to a target.

        Args:
            target: Light or group to address
            actions: Desired state (e.g. {"on": True, "bri": 200})

        Raises:
            DeviceOffError: A light was off/unreachable
            LightingError: Any other failure
        """
        pass

    @abstractmethod
    def power_off(self, target: LightTarget) -> None:
        """Switch the light, or every member light of the group, off."""
        pass

    def alert(self, light_id: str) -> None:
        """Blink a light once. Optional capability."""
        pass


class MockLightingService(LightingService):
    """
    Mock lighting service for testing.

    Records every call and can be scripted to fail for a target:
        lighting.fail_with(LightTarget.group("Hall"), DeviceOffError("off"), times=2)
    A times of None fails forever.
    """

    def __init__(
        self,
        lights: Optional[List[Light]] = None,
        groups: Optional[List[Group]] = None,
    ) -> None:
        self._lights = list(lights or [])
        self._groups = list(groups or [])
        self._calls: List[Tuple[str, Any, Any]] = []
        self._failures: Dict[LightTarget, List[Any]] = {}
        self.discovery_error: Optional[Exception] = None

    def fail_with(
        self,
        target: LightTarget,
        error: Exception,
        times: Optional[int] = None,
    ) -> None:
        """Make apply_state raise error for target (times=None: always)."""
        self._failures[target] = [error, times]

    def get_calls(self, kind: Optional[str] = None) -> List[Tuple[str, Any, Any]]:
        """Get recorded calls, optionally filtered by kind."""
        if kind is None:
            return self._calls.copy()
        return [c for c in self._calls if c[0] == kind]

    def clear_calls(self) -> None:
        self._calls.clear()

    # LightingService implementation

    def get_lights(self) -> List[Light]:
        if self.discovery_error:
            raise self.discovery_error
        return list(self._lights)

    def get_groups(self) -> List[Group]:
        if self.discovery_error:
            raise self.discovery_error
        return list(self._groups)

    def refresh(self) -> List[Light]:
        self._calls.append(("refresh", None, None))
        return self.get_lights()

    def apply_state(self, target: LightTarget, actions: Dict[str, Any]) -> None:
        self._calls.append(("apply_state", target, dict(actions)))
        failure = self._failures.get(target)
        if failure is None:
            return
        error, remaining = failure
        if remaining is not None:
            if remaining <= 0:
                return
            failure[1] = remaining - 1
        raise error

    def power_off(self, target: LightTarget) -> None:
        self._calls.append(("power_off", target, None))

    def alert(self, light_id: str) -> None:
        self._calls.append(("alert", light_id, None))
