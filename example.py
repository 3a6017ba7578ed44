#!/usr/bin/env python3
"""
Quick example demonstrating a hued rule engine pass.

Uses the sample configuration in examples/config and a mock lighting
service, so no bridge is needed.

Run with: PYTHONPATH=src python3 example.py
"""

from datetime import datetime
from pathlib import Path

from hued.config import EngineConfig
from hued.lighting import Group, Light, MockLightingService
from hued.rules import ConditionEvaluator, HostProbe, RuleEngine, SunDataCache, SunDataSource


class HomeProbe(HostProbe):
    """Pretend the phone is home and the TV is on."""

    def is_reachable(self, host):
        return host in {"phone.lan", "tv.lan"}


class FixedSun(SunDataSource):
    def fetch(self, latitude, longitude, day):
        sunrise = datetime(day.year, day.month, day.day, 7, 30).astimezone()
        sunset = datetime(day.year, day.month, day.day, 17, 45).astimezone()
        return sunrise, sunset


print("=" * 60)
print("hued Example")
print("=" * 60)

# 1. Lighting service
lighting = MockLightingService(
    lights=[Light(id="1", name="Hall"), Light(id="2", name="Sofa")],
    groups=[Group(id="1", name="Living room", light_ids=["2"])],
)

# 2. Engine over the sample config, Friday 21:00
now = datetime(2025, 1, 17, 21, 0).astimezone()
evaluator = ConditionEvaluator(SunDataCache(FixedSun()), HomeProbe(), clock=lambda: now)
config = EngineConfig(config_dir=Path(__file__).parent / "examples" / "config")
engine = RuleEngine(config, lighting, evaluator=evaluator)

print("\n1. Discovering lights and loading configuration...")
engine.discover_lights()
engine.load()
print(f"   ✓ {len(engine.lights)} lights, {len(engine.groups)} groups")
print(f"   ✓ Events: {', '.join(engine.events.names())}")
print(f"   ✓ Scenes: {', '.join(engine.scenes.names())}")
print(f"   ✓ Rules: {', '.join(r.name for r in engine.rules)}")

print("\n2. Running two passes...")
for i in range(2):
    result = engine.evaluate_and_execute()
    print(
        f"   Pass {i + 1}: {result.rules_valid} valid, "
        f"{result.rules_active} active (priority {result.active_priority}), "
        f"executed: {', '.join(result.executed) or '-'}"
    )

print("\n3. Light commands sent:")
for kind, target, actions in lighting.get_calls("apply_state"):
    print(f"   {target}: {actions}")
