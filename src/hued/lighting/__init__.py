"""
Lighting layer for hued.

The rule engine drives lights through the LightingService interface.
HueBridgeService is the production implementation; MockLightingService is
used by tests.
"""

from .adapter import (
    LightingService,
    MockLightingService,
    LightTarget,
    Light,
    Group,
    LightingError,
    DeviceOffError,
    BridgeNotConfiguredError,
)
from .hue import HueBridgeService

__all__ = [
    "LightingService",
    "MockLightingService",
    "HueBridgeService",
    "LightTarget",
    "Light",
    "Group",
    "LightingError",
    "DeviceOffError",
    "BridgeNotConfiguredError",
]
