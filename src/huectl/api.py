from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

logger = logging.getLogger(__name__)

DISCOVERY_URL = "https://discovery.meethue.com/"


class BridgeError(Exception):
    """Error object returned by the bridge in place of a success entry."""

    def __init__(self, error_type: int, address: str, description: str) -> None:
        super().__init__(description)
        self.type = error_type
        self.address = address
        self.description = description

    def __str__(self) -> str:
        return f"{self.description} (type {self.type}, address {self.address})"

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BridgeError":
        return cls(
            int(payload.get("type", 0)),
            str(payload.get("address", "")),
            str(payload.get("description", "unknown error")),
        )


@dataclasses.dataclass
class User:
    name: str
    clientkey: Optional[str] = None


def _host(ip: str) -> str:
    # IPv6 literals need brackets inside a URL
    if ":" in ip and not ip.startswith("["):
        return f"[{ip}]"
    return ip


def _check(data: Any) -> Any:
    # Errors come back as HTTP 200 with a list of {"error": {...}} entries.
    if isinstance(data, list):
        for item in data:
            if isinstance(item, dict) and "error" in item:
                raise BridgeError.from_payload(item["error"])
    return data


def discover(timeout: float = 5.0, session: Optional[requests.Session] = None) -> List[str]:
    """Return the IP addresses of bridges registered with the discovery service."""
    s = session or requests.Session()
    logger.debug("GET %s", DISCOVERY_URL)
    r = s.get(DISCOVERY_URL, timeout=timeout)
    r.raise_for_status()
    data = r.json()
    return [b["internalipaddress"] for b in data if isinstance(b, dict) and b.get("internalipaddress")]


def register_user(ip: str, devicetype: str, generate_clientkey: bool = False,
                  timeout: float = 5.0, session: Optional[requests.Session] = None) -> User:
    s = session or requests.Session()
    payload: Dict[str, Any] = {"devicetype": devicetype}
    if generate_clientkey:
        payload["generateclientkey"] = True
    url = f"http://{_host(ip)}/api"
    logger.debug("POST %s", url)
    r = s.post(url, json=payload, timeout=timeout)
    r.raise_for_status()
    data = _check(r.json())
    for item in data or []:
        success = item.get("success") if isinstance(item, dict) else None
        if success and "username" in success:
            return User(name=success["username"], clientkey=success.get("clientkey"))
    raise BridgeError(0, "/", "bridge did not return a username")


@dataclasses.dataclass
class Bridge:
    ip: str
    username: str
    timeout: float = 5.0
    session: Optional[requests.Session] = None

    def _s(self) -> requests.Session:
        if self.session is None:
            self.session = requests.Session()
        return self.session

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"http://{_host(self.ip)}/api/{self.username}{path}"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        r = self._s().request(method, self._url(path), json=payload, timeout=self.timeout)
        logger.debug("%s http://%s/api/<username>%s -> %s", method, _host(self.ip), path, r.status_code)
        r.raise_for_status()
        return _check(r.json())

    # --- Generic resource helpers ---
    def _get(self, kind: str, resource_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/{kind}/{resource_id}")

    def _get_all(self, kind: str) -> Dict[str, Any]:
        return self._request("GET", f"/{kind}")

    def _put(self, path: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._request("PUT", path, modifier)

    def _create(self, kind: str, definition: Dict[str, Any]) -> str:
        data = self._request("POST", f"/{kind}", definition)
        for item in data or []:
            success = item.get("success") if isinstance(item, dict) else None
            if success and "id" in success:
                return str(success["id"])
        raise BridgeError(0, f"/{kind}", "bridge did not return an id")

    def _delete(self, kind: str, resource_id: str) -> None:
        self._request("DELETE", f"/{kind}/{resource_id}")

    # --- Config ---
    def get_config(self) -> Dict[str, Any]:
        return self._request("GET", "/config")

    def set_config(self, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put("/config", modifier)

    # --- Lights ---
    def get_light(self, light_id: str) -> Dict[str, Any]:
        return self._get("lights", light_id)

    def get_all_lights(self) -> Dict[str, Any]:
        return self._get_all("lights")

    def set_light_state(self, light_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/lights/{light_id}/state", modifier)

    def set_light_attribute(self, light_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/lights/{light_id}", modifier)

    def delete_light(self, light_id: str) -> None:
        self._delete("lights", light_id)

    def search_new_lights(self, device_ids: Optional[Iterable[str]] = None) -> None:
        payload = {"deviceid": list(device_ids)} if device_ids else None
        self._request("POST", "/lights", payload)

    def get_new_lights(self) -> Dict[str, Any]:
        return self._request("GET", "/lights/new")

    # --- Groups ---
    def get_group(self, group_id: str) -> Dict[str, Any]:
        return self._get("groups", group_id)

    def get_all_groups(self) -> Dict[str, Any]:
        return self._get_all("groups")

    def set_group_state(self, group_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/groups/{group_id}/action", modifier)

    def set_group_attribute(self, group_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/groups/{group_id}", modifier)

    def create_group(self, definition: Dict[str, Any]) -> str:
        return self._create("groups", definition)

    def delete_group(self, group_id: str) -> None:
        self._delete("groups", group_id)

    # --- Scenes ---
    def get_scene(self, scene_id: str) -> Dict[str, Any]:
        return self._get("scenes", scene_id)

    def get_all_scenes(self) -> Dict[str, Any]:
        return self._get_all("scenes")

    def set_scene(self, scene_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/scenes/{scene_id}", modifier)

    def set_scene_light_state(self, scene_id: str, light_id: str,
                              modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/scenes/{scene_id}/lightstates/{light_id}", modifier)

    def create_scene(self, definition: Dict[str, Any]) -> str:
        return self._create("scenes", definition)

    def delete_scene(self, scene_id: str) -> None:
        self._delete("scenes", scene_id)

    # --- Schedules ---
    def get_schedule(self, schedule_id: str) -> Dict[str, Any]:
        return self._get("schedules", schedule_id)

    def get_all_schedules(self) -> Dict[str, Any]:
        return self._get_all("schedules")

    def set_schedule(self, schedule_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/schedules/{schedule_id}", modifier)

    def create_schedule(self, definition: Dict[str, Any]) -> str:
        return self._create("schedules", definition)

    def delete_schedule(self, schedule_id: str) -> None:
        self._delete("schedules", schedule_id)

    # --- Sensors ---
    def get_sensor(self, sensor_id: str) -> Dict[str, Any]:
        return self._get("sensors", sensor_id)

    def get_all_sensors(self) -> Dict[str, Any]:
        return self._get_all("sensors")

    def set_sensor_attribute(self, sensor_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/sensors/{sensor_id}", modifier)

    def set_sensor_state(self, sensor_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/sensors/{sensor_id}/state", modifier)

    def set_sensor_config(self, sensor_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/sensors/{sensor_id}/config", modifier)

    def delete_sensor(self, sensor_id: str) -> None:
        self._delete("sensors", sensor_id)

    def search_new_sensors(self) -> None:
        self._request("POST", "/sensors")

    def get_new_sensors(self) -> Dict[str, Any]:
        return self._request("GET", "/sensors/new")

    # --- Rules ---
    def get_rule(self, rule_id: str) -> Dict[str, Any]:
        return self._get("rules", rule_id)

    def get_all_rules(self) -> Dict[str, Any]:
        return self._get_all("rules")

    def set_rule(self, rule_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/rules/{rule_id}", modifier)

    def create_rule(self, definition: Dict[str, Any]) -> str:
        return self._create("rules", definition)

    def delete_rule(self, rule_id: str) -> None:
        self._delete("rules", rule_id)

    # --- Resourcelinks ---
    def get_resourcelink(self, link_id: str) -> Dict[str, Any]:
        return self._get("resourcelinks", link_id)

    def get_all_resourcelinks(self) -> Dict[str, Any]:
        return self._get_all("resourcelinks")

    def set_resourcelink(self, link_id: str, modifier: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._put(f"/resourcelinks/{link_id}", modifier)

    def create_resourcelink(self, definition: Dict[str, Any]) -> str:
        return self._create("resourcelinks", definition)

    def delete_resourcelink(self, link_id: str) -> None:
        self._delete("resourcelinks", link_id)
