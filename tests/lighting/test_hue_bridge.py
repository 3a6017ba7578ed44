"""Tests for the Hue bridge client."""

import json

import httpx
import pytest

from hued.config import BridgeConfig, EngineConfig
from hued.lighting import (
    BridgeNotConfiguredError,
    DeviceOffError,
    HueBridgeService,
    LightingError,
    LightTarget,
)
from hued.rules import RuleEngine

LIGHTS = {
    "1": {"name": "Lamp", "state": {"on": True, "bri": 100}},
    "2": {"name": "Ceiling", "state": {"on": False}},
}
GROUPS = {"3": {"name": "Living", "lights": ["1", "2"]}}


class FakeBridge:
    """In-memory bridge answering the v1 REST API."""

    def __init__(self):
        self.puts = []
        self.off_lights = set()
        self.fail_all = False
        self.broken_lights = set()
        self.lights_body = LIGHTS

    def __call__(self, request):
        assert request.url.path.startswith("/api/secret")
        path = request.url.path[len("/api/secret"):]
        if self.fail_all:
            return httpx.Response(500)
        if request.method == "GET" and path == "/lights":
            return httpx.Response(200, json=self.lights_body)
        if request.method == "GET" and path == "/groups":
            return httpx.Response(200, json=GROUPS)
        if request.method == "PUT":
            body = json.loads(request.content)
            self.puts.append((path, body))
            if path == "/groups/3/action" and self.off_lights and "bri" in body:
                return httpx.Response(
                    200,
                    json=[{"error": {
                        "type": 201,
                        "address": "/groups/3/action/bri",
                        "description": "parameter, bri, is not modifiable. Device is set to off.",
                    }}],
                )
            if path.startswith("/lights/") and path.split("/")[2] in self.broken_lights:
                return httpx.Response(
                    200,
                    json=[{"error": {"type": 3, "description": "resource not available"}}],
                )
            return httpx.Response(200, json=[{"success": {path: body}}])
        return httpx.Response(404)


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def service(bridge):
    """Create a bridge service against the fake bridge."""
    return HueBridgeService(
        BridgeConfig(ip="10.0.0.2", user="secret"),
        transport=httpx.MockTransport(bridge),
    )


class TestEnumeration:
    """Tests for lights and groups."""

    def test_get_lights(self, service):
        lights = service.get_lights()
        assert [(light.id, light.name) for light in lights] == [("1", "Lamp"), ("2", "Ceiling")]
        assert lights[0].state["bri"] == 100

    def test_get_groups(self, service):
        groups = service.get_groups()
        assert groups[0].name == "Living"
        assert groups[0].light_ids == ["1", "2"]

    def test_server_error(self, service, bridge):
        bridge.fail_all = True
        with pytest.raises(LightingError):
            service.get_lights()

    def test_unexpected_lights_body(self, service, bridge):
        bridge.lights_body = []
        with pytest.raises(LightingError):
            service.get_lights()

    def test_unexpected_light_entry(self, service, bridge):
        bridge.lights_body = {"1": "Lamp"}
        with pytest.raises(LightingError):
            service.get_lights()

    def test_malformed_error_entry(self, service, bridge):
        bridge.lights_body = [{"error": "nope"}]
        with pytest.raises(LightingError):
            service.get_lights()

    def test_discovery_with_unexpected_body_empties_lists(self, service, bridge, tmp_path):
        bridge.lights_body = []
        engine = RuleEngine(EngineConfig(config_dir=tmp_path), service)

        engine.discover_lights()

        assert engine.lights == []
        assert engine.groups == []


class TestControl:
    """Tests for applying state."""

    def test_group_by_name(self, service, bridge):
        service.apply_state(LightTarget.group("Living"), {"on": True, "bri": 50})
        assert bridge.puts == [("/groups/3/action", {"on": True, "bri": 50})]

    def test_light_by_name(self, service, bridge):
        service.apply_state(LightTarget.light("Ceiling"), {"on": True})
        assert bridge.puts == [("/lights/2/state", {"on": True})]

    def test_light_by_id(self, service, bridge):
        service.apply_state(LightTarget.light(1), {"on": False})
        assert bridge.puts == [("/lights/1/state", {"on": False})]

    def test_all_lights_group(self, service, bridge):
        service.apply_state(LightTarget.group(0), {"on": True})
        assert bridge.puts == [("/groups/0/action", {"on": True})]

    def test_unknown_target(self, service):
        with pytest.raises(LightingError):
            service.apply_state(LightTarget.group("Garage"), {"on": True})

    def test_device_off(self, service, bridge):
        bridge.off_lights = {"2"}
        with pytest.raises(DeviceOffError):
            service.apply_state(LightTarget.group("Living"), {"on": True, "bri": 50})

    def test_other_bridge_error(self, service, bridge):
        bridge.broken_lights = {"2"}
        with pytest.raises(LightingError) as excinfo:
            service.apply_state(LightTarget.light(2), {"on": True})
        assert not isinstance(excinfo.value, DeviceOffError)

    def test_power_off_group_turns_off_members(self, service, bridge):
        service.power_off(LightTarget.group("Living"))
        assert bridge.puts == [
            ("/lights/1/state", {"on": False}),
            ("/lights/2/state", {"on": False}),
        ]

    def test_power_off_all_lights(self, service, bridge):
        service.power_off(LightTarget.group(0))
        assert [p[0] for p in bridge.puts] == ["/lights/1/state", "/lights/2/state"]

    def test_alert(self, service, bridge):
        service.alert("1")
        assert bridge.puts == [("/lights/1/state", {"alert": "select"})]


class TestConfiguration:
    """Tests for an unconfigured bridge."""

    def test_not_configured(self):
        service = HueBridgeService(BridgeConfig())
        with pytest.raises(BridgeNotConfiguredError):
            service.get_lights()

    def test_close(self, service):
        service.get_lights()
        service.close()
        service.close()
