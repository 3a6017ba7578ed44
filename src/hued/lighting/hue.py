"""
Hue bridge client.

Talks to the bridge's REST API (v1) over httpx:
    GET  /api/<user>/lights
    GET  /api/<user>/groups
    PUT  /api/<user>/lights/<id>/state
    PUT  /api/<user>/groups/<id>/action

The bridge answers a PUT with a list of {"success": ...} / {"error": ...}
entries. Error type 201 ("parameter is not modifiable, device is set to off")
is the transient "light is off" condition and maps to DeviceOffError.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from hued.config import BridgeConfig

from .adapter import (
    BridgeNotConfiguredError,
    DeviceOffError,
    Group,
    Light,
    LightingError,
    LightingService,
    LightTarget,
)

logger = logging.getLogger(__name__)

# Hue API error types
ERROR_DEVICE_OFF = 201

# Group 0 always contains every light known to the bridge
ALL_LIGHTS_GROUP = "0"


class HueBridgeService(LightingService):
    """
    LightingService backed by a Hue bridge.

    Targets may reference lights and groups by bridge id or by name; names
    are resolved against the last enumeration (fetched lazily if needed).
    """

    def __init__(
        self,
        bridge: BridgeConfig,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._bridge = bridge
        self._client: Optional[httpx.Client] = None
        self._timeout = timeout
        self._transport = transport
        self._lights: Dict[str, Light] = {}
        self._groups: Dict[str, Group] = {}

    @property
    def base_url(self) -> str:
        return f"http://{self._bridge.ip}/api/{self._bridge.user}"

    def _get_client(self) -> httpx.Client:
        if not self._bridge.is_configured:
            raise BridgeNotConfiguredError("No bridge ip/user configured (see bridge.yml)")
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    # =========================================================================
    # HTTP helpers
    # =========================================================================

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        client = self._get_client()
        try:
            response = client.request(method, path, json=json)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise LightingError(f"Bridge request {method} {path} failed: {e}") from e
        except ValueError as e:
            raise LightingError(f"Bridge returned invalid JSON for {path}: {e}") from e

        self._check_errors(data)
        return data

    @staticmethod
    def _check_errors(data: Any) -> None:
        """Raise for the first error entry in a bridge response."""
        if not isinstance(data, list):
            return
        for entry in data:
            if not isinstance(entry, dict) or "error" not in entry:
                continue
            error = entry["error"]
            if not isinstance(error, dict):
                raise LightingError(f"Bridge returned malformed error: {error!r}")
            description = error.get("description", "unknown error")
            if error.get("type") == ERROR_DEVICE_OFF:
                raise DeviceOffError(description)
            raise LightingError(f"Bridge error {error.get('type')}: {description}")

    # =========================================================================
    # Enumeration
    # =========================================================================

    def _get_mapping(self, path: str) -> Dict[str, Dict[str, Any]]:
        """GET a collection, which the bridge returns as an id -> object mapping."""
        data = self._request("GET", path)
        if not isinstance(data, dict) or not all(isinstance(v, dict) for v in data.values()):
            raise LightingError(f"Bridge returned unexpected data for {path}: {data!r}")
        return data

    def get_lights(self) -> List[Light]:
        data = self._get_mapping("/lights")
        self._lights = {
            light_id: Light(
                id=light_id,
                name=info.get("name", light_id),
                state=dict(info.get("state", {})),
            )
            for light_id, info in data.items()
        }
        return list(self._lights.values())

    def get_groups(self) -> List[Group]:
        data = self._get_mapping("/groups")
        self._groups = {
            group_id: Group(
                id=group_id,
                name=info.get("name", group_id),
                light_ids=[str(i) for i in info.get("lights", [])],
            )
            for group_id, info in data.items()
        }
        return list(self._groups.values())

    def refresh(self) -> List[Light]:
        return self.get_lights()

    # =========================================================================
    # Target resolution
    # =========================================================================

    def _resolve_light(self, ref: str) -> str:
        if ref in self._lights:
            return ref
        if not self._lights:
            self.get_lights()
            if ref in self._lights:
                return ref
        for light in self._lights.values():
            if light.name == ref:
                return light.id
        raise LightingError(f"Unknown light: {ref}")

    def _resolve_group(self, ref: str) -> str:
        if ref == ALL_LIGHTS_GROUP or ref in self._groups:
            return ref
        if not self._groups:
            self.get_groups()
            if ref in self._groups:
                return ref
        for group in self._groups.values():
            if group.name == ref:
                return group.id
        raise LightingError(f"Unknown group: {ref}")

    def _member_light_ids(self, target: LightTarget) -> List[str]:
        if target.kind == "light":
            return [self._resolve_light(target.ref)]
        group_id = self._resolve_group(target.ref)
        if group_id == ALL_LIGHTS_GROUP:
            if not self._lights:
                self.get_lights()
            return list(self._lights)
        return list(self._groups[group_id].light_ids)

    # =========================================================================
    # Control
    # =========================================================================

    def apply_state(self, target: LightTarget, actions: Dict[str, Any]) -> None:
        if target.kind == "light":
            light_id = self._resolve_light(target.ref)
            logger.debug(f"PUT light {light_id} state {actions}")
            self._request("PUT", f"/lights/{light_id}/state", json=dict(actions))
        else:
            group_id = self._resolve_group(target.ref)
            logger.debug(f"PUT group {group_id} action {actions}")
            self._request("PUT", f"/groups/{group_id}/action", json=dict(actions))

    def power_off(self, target: LightTarget) -> None:
        for light_id in self._member_light_ids(target):
            self._request("PUT", f"/lights/{light_id}/state", json={"on": False})

    def alert(self, light_id: str) -> None:
        self._request("PUT", f"/lights/{light_id}/state", json={"alert": "select"})
