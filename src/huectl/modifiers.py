from __future__ import annotations

import argparse
from typing import Any, Dict, Optional

from .color import Color
from .values import Adjust, AdjustKind, SceneKind

# Bridge range for brightness and saturation.
PERCENT_SCALE = 254


class Modifier:
    """Sparse set of field assignments for a partial update.

    Fields that were never set are not sent, so the rest of the resource is
    left untouched on the bridge.
    """

    def __init__(self) -> None:
        self._fields: Dict[str, Any] = {}

    def set(self, key: str, value: Any) -> "Modifier":
        if value is not None:
            self._fields[key] = value
        return self

    def adjust(self, key: str, adjust: Optional[Adjust], scale: Optional[int] = None) -> "Modifier":
        if adjust is None:
            return self
        value = adjust.value
        if scale is not None:
            value = round(value * scale / 100)
        if adjust.is_relative:
            self._fields[f"{key}_inc"] = -value if adjust.kind is AdjustKind.DECREMENT else value
        else:
            self._fields[key] = value
        return self

    def is_empty(self) -> bool:
        return not self._fields

    def to_payload(self) -> Dict[str, Any]:
        return dict(self._fields)

    def __repr__(self) -> str:
        return f"Modifier({self._fields!r})"


def _on_off(args: argparse.Namespace) -> Optional[bool]:
    # --on wins when both flags are given
    if getattr(args, "on", False):
        return True
    if getattr(args, "off", False):
        return False
    return None


def _color(args: argparse.Namespace) -> Optional[Color]:
    color: Optional[Color] = None
    coords = getattr(args, "color_space_coordinates", None)
    if coords is not None:
        color = Color.from_space_coordinates(coords[0], coords[1])
    rgb = getattr(args, "color_rgb", None)
    if rgb is not None:
        color = Color.from_rgb(rgb[0], rgb[1], rgb[2])
    hex_color = getattr(args, "color_hex", None)
    if hex_color is not None:
        color = hex_color
    return color


def _enum_value(value: Any) -> Any:
    return value.value if value is not None else None


def light_state_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("on", _on_off(args))
    m.adjust("bri", getattr(args, "brightness", None), scale=PERCENT_SCALE)
    m.adjust("hue", getattr(args, "hue", None))
    m.adjust("sat", getattr(args, "saturation", None), scale=PERCENT_SCALE)
    color = _color(args)
    if color is not None:
        m.set("xy", color.to_xy())
    m.adjust("ct", getattr(args, "color_temperature", None))
    m.set("alert", _enum_value(getattr(args, "alert", None)))
    m.set("effect", _enum_value(getattr(args, "effect", None)))
    m.set("transitiontime", getattr(args, "transition_time", None))
    return m


def light_attribute_modifier(args: argparse.Namespace) -> Modifier:
    return Modifier().set("name", getattr(args, "name", None))


def group_state_modifier(args: argparse.Namespace) -> Modifier:
    return light_state_modifier(args).set("scene", getattr(args, "scene", None))


def group_attribute_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("name", getattr(args, "name", None))
    m.set("lights", getattr(args, "lights", None))
    m.set("class", getattr(args, "class_", None))
    return m


def group_definition(args: argparse.Namespace) -> Dict[str, Any]:
    m = Modifier()
    m.set("name", args.name)
    m.set("lights", list(args.lights or []))
    m.set("type", _enum_value(args.kind))
    m.set("class", getattr(args, "class_", None))
    return m.to_payload()


def scene_attribute_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("name", getattr(args, "name", None))
    m.set("lights", getattr(args, "lights", None))
    if getattr(args, "store_light_states", False):
        m.set("storelightstate", True)
    return m


def scene_light_state_modifier(args: argparse.Namespace) -> Modifier:
    return light_state_modifier(args)


def scene_definition(args: argparse.Namespace) -> Dict[str, Any]:
    group = getattr(args, "group", None)
    kind = SceneKind.GROUP_SCENE if group is not None else SceneKind.LIGHT_SCENE
    m = Modifier()
    m.set("name", args.name)
    m.set("type", kind.value)
    if group is not None:
        m.set("group", group)
    else:
        m.set("lights", list(args.lights or []))
    if args.recycle:
        m.set("recycle", True)
    m.set("transitiontime", getattr(args, "transition_time", None))
    appdata = Modifier().set("version", args.app_version).set("data", args.app_data)
    if not appdata.is_empty():
        m.set("appdata", appdata.to_payload())
    return m.to_payload()


def _schedule_command(args: argparse.Namespace) -> Optional[Dict[str, Any]]:
    address = getattr(args, "command_address", None)
    method = getattr(args, "command_method", None)
    body = getattr(args, "command_body", None)
    if address is None and method is None and body is None:
        return None
    cmd = Modifier()
    cmd.set("address", address)
    cmd.set("method", _enum_value(method))
    cmd.set("body", body)
    return cmd.to_payload()


def schedule_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("name", getattr(args, "name", None))
    m.set("description", getattr(args, "description", None))
    m.set("command", _schedule_command(args))
    m.set("localtime", getattr(args, "localtime", None))
    m.set("status", _enum_value(getattr(args, "status", None)))
    m.set("autodelete", getattr(args, "auto_delete", None))
    return m


def schedule_definition(args: argparse.Namespace) -> Dict[str, Any]:
    m = schedule_modifier(args)
    if getattr(args, "recycle", False):
        m.set("recycle", True)
    return m.to_payload()


def sensor_attribute_modifier(args: argparse.Namespace) -> Modifier:
    return Modifier().set("name", getattr(args, "name", None))


def sensor_state_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("presence", getattr(args, "presence", None))
    m.set("flag", getattr(args, "flag", None))
    m.set("status", getattr(args, "status", None))
    return m


def sensor_config_modifier(args: argparse.Namespace) -> Modifier:
    return Modifier().set("on", _on_off(args))


def rule_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("name", getattr(args, "name", None))
    m.set("status", _enum_value(getattr(args, "status", None)))
    m.set("conditions", getattr(args, "conditions", None))
    m.set("actions", getattr(args, "actions", None))
    return m


def rule_definition(args: argparse.Namespace) -> Dict[str, Any]:
    return rule_modifier(args).to_payload()


def resourcelink_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("name", getattr(args, "name", None))
    m.set("description", getattr(args, "description", None))
    m.set("classid", getattr(args, "class_id", None))
    m.set("links", getattr(args, "links", None))
    return m


def resourcelink_definition(args: argparse.Namespace) -> Dict[str, Any]:
    m = resourcelink_modifier(args)
    m.set("type", "Link")
    if getattr(args, "recycle", False):
        m.set("recycle", True)
    return m.to_payload()


def config_modifier(args: argparse.Namespace) -> Modifier:
    m = Modifier()
    m.set("name", getattr(args, "name", None))
    m.set("proxyaddress", getattr(args, "proxy_address", None))
    m.set("proxyport", getattr(args, "proxy_port", None))
    m.set("ipaddress", getattr(args, "ip_address", None))
    m.set("netmask", getattr(args, "netmask", None))
    m.set("gateway", getattr(args, "gateway", None))
    m.set("dhcp", getattr(args, "dhcp", None))
    if getattr(args, "link_button", False):
        m.set("linkbutton", True)
    if getattr(args, "touchlink", False):
        m.set("touchlink", True)
    m.set("zigbeechannel", getattr(args, "zigbee_channel", None))
    m.set("timezone", getattr(args, "timezone", None))
    return m
