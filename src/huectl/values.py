from __future__ import annotations

import argparse
import enum
import ipaddress
import json
import re
from typing import Any, NamedTuple

from .color import Color

_ADJUST_RE = re.compile(r"^([+-]?)(\d+)$", re.ASCII)
_HEX_RE = re.compile(r"^[0-9a-f]{6}$", re.ASCII | re.IGNORECASE)


class ParseError(argparse.ArgumentTypeError):
    @classmethod
    def from_integer_value(cls, max_value: int) -> "ParseError":
        return cls(
            f"The value must be an integer between 0 and {max_value} "
            "and can have '-' or '+' as prefix."
        )


class AdjustKind(enum.Enum):
    OVERRIDE = "override"
    INCREMENT = "increment"
    DECREMENT = "decrement"


class Adjust(NamedTuple):
    value: int
    kind: AdjustKind = AdjustKind.OVERRIDE

    @property
    def is_relative(self) -> bool:
        return self.kind is not AdjustKind.OVERRIDE


class _Choice(enum.Enum):
    """Closed value set matched case-insensitively against its wire value."""

    @classmethod
    def parse(cls, raw: str):
        text = " ".join(raw.split()).lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise ParseError(
            f"invalid value '{raw}', expected one of: {', '.join(cls.variants())}"
        )

    @classmethod
    def variants(cls) -> list[str]:
        return [m.value for m in cls]

    def __str__(self) -> str:
        return self.value


class Alert(_Choice):
    NONE = "none"
    SELECT = "select"
    LSELECT = "lselect"


class Effect(_Choice):
    NONE = "none"
    COLORLOOP = "colorloop"


class Status(_Choice):
    ENABLED = "enabled"
    DISABLED = "disabled"


class GroupKind(_Choice):
    LIGHT_GROUP = "LightGroup"
    ROOM = "Room"
    ENTERTAINMENT = "Entertainment"
    ZONE = "Zone"


class SceneKind(_Choice):
    LIGHT_SCENE = "LightScene"
    GROUP_SCENE = "GroupScene"


class Method(_Choice):
    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"


class Operator(_Choice):
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    DX = "dx"
    DDX = "ddx"
    STABLE = "stable"
    NOT_STABLE = "not stable"
    IN = "in"
    NOT_IN = "not in"

    @property
    def takes_value(self) -> bool:
        return self in (Operator.EQ, Operator.GT, Operator.LT, Operator.IN, Operator.NOT_IN)


def _parse_adjust(raw: str, max_value: int, max_step: int | None = None) -> Adjust:
    m = _ADJUST_RE.match(raw.strip())
    if m is None:
        raise ParseError.from_integer_value(max_value)
    sign, digits = m.groups()
    value = int(digits)
    if sign == "+":
        kind = AdjustKind.INCREMENT
    elif sign == "-":
        kind = AdjustKind.DECREMENT
    else:
        kind = AdjustKind.OVERRIDE
    limit = max_value if kind is AdjustKind.OVERRIDE or max_step is None else max_step
    if value > limit:
        raise ParseError.from_integer_value(max_value)
    return Adjust(value, kind)


def parse_brightness(raw: str) -> Adjust:
    return _parse_adjust(raw, 100)


def parse_saturation(raw: str) -> Adjust:
    return _parse_adjust(raw, 100)


def parse_hue(raw: str) -> Adjust:
    # hue_inc is limited to -65534..65534
    return _parse_adjust(raw, 65535, 65534)


# Mired range supported by Hue white ambiance bulbs.
CT_MIN = 153
CT_MAX = 500


def parse_color_temperature(raw: str) -> Adjust:
    msg = (
        f"The value must be an integer between {CT_MIN} and {CT_MAX}, "
        f"or a step of at most {CT_MAX - CT_MIN} with '-' or '+' as prefix."
    )
    try:
        adjust = _parse_adjust(raw, CT_MAX, CT_MAX - CT_MIN)
    except ParseError:
        raise ParseError(msg) from None
    if not adjust.is_relative and adjust.value < CT_MIN:
        raise ParseError(msg)
    return adjust


def parse_color_hex(raw: str) -> Color:
    text = raw.strip()
    if not _HEX_RE.match(text):
        raise ParseError("The value must be a hex color with exactly 6 digits, e.g. ff00aa.")
    return Color.from_hex(text)


def parse_coordinate(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ParseError("The value must be a number between 0 and 1.") from None
    if not 0.0 <= value <= 1.0:
        raise ParseError("The value must be a number between 0 and 1.")
    return value


def _parse_bounded_int(raw: str, max_value: int) -> int:
    try:
        value = int(raw.strip(), 10)
    except ValueError:
        raise ParseError(f"The value must be an integer between 0 and {max_value}.") from None
    if not 0 <= value <= max_value:
        raise ParseError(f"The value must be an integer between 0 and {max_value}.")
    return value


def parse_rgb_component(raw: str) -> int:
    return _parse_bounded_int(raw, 255)


def parse_transition_time(raw: str) -> int:
    return _parse_bounded_int(raw, 65535)


def parse_port(raw: str) -> int:
    return _parse_bounded_int(raw, 65535)


def parse_timeout(raw: str) -> float:
    try:
        value = float(raw.strip())
    except ValueError:
        raise ParseError(f"'{raw}' is not a number of seconds.") from None
    if not 0 < value < float("inf"):
        raise ParseError("The timeout must be greater than 0 seconds.")
    return value


def parse_ip_address(raw: str) -> str:
    try:
        return str(ipaddress.ip_address(raw.strip()))
    except ValueError:
        raise ParseError(f"'{raw}' is not a valid IP address.") from None


_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def parse_bool(raw: str) -> bool:
    text = raw.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ParseError("The value must be one of: true, false.")


def parse_json_object(raw: str) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise ParseError(f"The value must be a JSON object: {e}") from None
    if not isinstance(value, dict):
        raise ParseError("The value must be a JSON object.")
    return value


def _parse_address(raw: str) -> str:
    if not raw.startswith("/"):
        raise ParseError(f"The address '{raw}' must start with '/'.")
    return raw


def parse_condition(raw: str) -> dict[str, Any]:
    """Parse 'ADDRESS OPERATOR [VALUE]', e.g. '/sensors/2/state/buttonevent eq 16'."""
    parts = raw.split()
    if len(parts) < 2:
        raise ParseError("A condition must have the form 'ADDRESS OPERATOR [VALUE]'.")
    address = _parse_address(parts[0])
    rest = parts[1:]
    # two-word operators: "not stable", "not in"
    if rest[0].lower() == "not" and len(rest) > 1:
        op_text, rest = " ".join(rest[:2]), rest[2:]
    else:
        op_text, rest = rest[0], rest[1:]
    op = Operator.parse(op_text)
    condition: dict[str, Any] = {"address": address, "operator": op.value}
    if op.takes_value:
        if not rest:
            raise ParseError(f"The operator '{op.value}' requires a value.")
        condition["value"] = " ".join(rest)
    elif rest:
        raise ParseError(f"The operator '{op.value}' does not take a value.")
    return condition


def parse_action(raw: str) -> dict[str, Any]:
    """Parse 'ADDRESS METHOD [JSON_BODY]', e.g. '/groups/0/action PUT {"on": true}'."""
    parts = raw.strip().split(None, 2)
    if len(parts) < 2:
        raise ParseError("An action must have the form 'ADDRESS METHOD [JSON_BODY]'.")
    action: dict[str, Any] = {
        "address": _parse_address(parts[0]),
        "method": Method.parse(parts[1]).value,
    }
    if len(parts) == 3:
        action["body"] = parse_json_object(parts[2])
    return action
