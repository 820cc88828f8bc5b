from __future__ import annotations

import dataclasses


def _gamma(channel: int) -> float:
    v = channel / 255.0
    if v > 0.04045:
        return ((v + 0.055) / 1.055) ** 2.4
    return v / 12.92


@dataclasses.dataclass(frozen=True)
class Color:
    """A color as CIE 1931 xy coordinates, the only form sent to the bridge."""

    x: float
    y: float

    @classmethod
    def from_space_coordinates(cls, x: float, y: float) -> "Color":
        return cls(round(x, 4), round(y, 4))

    @classmethod
    def from_rgb(cls, red: int, green: int, blue: int) -> "Color":
        r, g, b = _gamma(red), _gamma(green), _gamma(blue)
        # Wide RGB D65 conversion
        big_x = r * 0.664511 + g * 0.154324 + b * 0.162028
        big_y = r * 0.283881 + g * 0.668433 + b * 0.047685
        big_z = r * 0.000088 + g * 0.072310 + b * 0.986039
        total = big_x + big_y + big_z
        if total == 0:
            return cls(0.0, 0.0)
        return cls.from_space_coordinates(big_x / total, big_y / total)

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        value = value.strip()
        return cls.from_rgb(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))

    def to_xy(self) -> list[float]:
        return [self.x, self.y]
