"""Unit conversions between host characteristics and transport units.

All functions are pure and total: out-of-range input is capped, never
rejected.
"""
from __future__ import annotations

import colorsys
import math
import re
from typing import Tuple

from .const import (
    COLOR_TEMP_MIRED_MAX,
    COLOR_TEMP_MIRED_MIN,
    HUE_MAX,
    SATURATION_MAX,
)

_VERSION_MARKERS = re.compile(r"^V|-.*$")


def clamp(value, minimum, maximum):
    """Clamp value into [minimum, maximum]."""
    return max(minimum, min(maximum, value))


def _finite(value: float, default: float = 0.0) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value):
        return default
    return value


def hs_to_rgb(hue: float, saturation: float) -> Tuple[int, int, int]:
    """HSV -> RGB with value fixed at max; saturation 100 gives the pure hue."""
    h = clamp(_finite(hue), 0.0, float(HUE_MAX)) % HUE_MAX
    s = clamp(_finite(saturation), 0.0, float(SATURATION_MAX))
    r, g, b = colorsys.hsv_to_rgb(h / HUE_MAX, s / SATURATION_MAX, 1.0)
    return int(round(r * 255)), int(round(g * 255)), int(round(b * 255))


def rgb_to_hs(red: int, green: int, blue: int) -> Tuple[int, int]:
    """RGB (0-255 each) -> (hue 0-359, saturation 0-100)."""
    r, g, b = (clamp(_finite(c), 0.0, 255.0) / 255.0 for c in (red, green, blue))
    h, s, _v = colorsys.rgb_to_hsv(r, g, b)
    hue = int(round(h * HUE_MAX)) % HUE_MAX
    return hue, int(round(s * SATURATION_MAX))


def mired_to_kelvin(mired: float) -> int:
    """round(1e6 / mired); non-positive input is treated as 1 mired."""
    return int(round(1_000_000 / max(1.0, _finite(mired, 1.0))))


def kelvin_to_mired(kelvin: float) -> int:
    """round(1e6 / kelvin); non-positive input is treated as 1 Kelvin."""
    return int(round(1_000_000 / max(1.0, _finite(kelvin, 1.0))))


def kelvin_to_mired_clamped(
    kelvin: float,
    minimum: int = COLOR_TEMP_MIRED_MIN,
    maximum: int = COLOR_TEMP_MIRED_MAX,
) -> int:
    return clamp(kelvin_to_mired(kelvin), minimum, maximum)


def mired_to_kelvin_clamped(mired: float, minimum: int, maximum: int) -> int:
    return clamp(mired_to_kelvin(mired), minimum, maximum)


def kelvin_to_rgb(kelvin: float) -> Tuple[int, int, int]:
    """Approximate the RGB of a black body at the given temperature.

    Tanner Helland's fit, valid for 1000K-40000K.
    """
    temp = clamp(_finite(kelvin, 6500.0), 1000.0, 40000.0) / 100.0

    if temp <= 66:
        red = 255.0
        green = 99.4708025861 * math.log(temp) - 161.1195681661
    else:
        red = 329.698727446 * math.pow(temp - 60, -0.1332047592)
        green = 288.1221695283 * math.pow(temp - 60, -0.0755148492)

    if temp >= 66:
        blue = 255.0
    elif temp <= 19:
        blue = 0.0
    else:
        blue = 138.5177312231 * math.log(temp - 10) - 305.0447927307

    return tuple(int(round(clamp(c, 0.0, 255.0))) for c in (red, green, blue))  # type: ignore[return-value]


def mired_to_hs(mired: float) -> Tuple[int, int]:
    """Hue/saturation that visually matches a color temperature.

    Used to shadow the color characteristics while in temperature mode.
    """
    m = clamp(_finite(mired, COLOR_TEMP_MIRED_MIN), COLOR_TEMP_MIRED_MIN, COLOR_TEMP_MIRED_MAX)
    return rgb_to_hs(*kelvin_to_rgb(1_000_000 / m))


def parse_rgb(value) -> Tuple[int, int, int] | None:
    """Parse "r:g:b" (OpenAPI/webhook) into a tuple; None when malformed."""
    if isinstance(value, (list, tuple)) and len(value) == 3:
        parts = list(value)
    elif isinstance(value, str):
        parts = value.split(":")
        if len(parts) != 3:
            return None
    else:
        return None
    try:
        r, g, b = (int(p) for p in parts)
    except (TypeError, ValueError):
        return None
    return clamp(r, 0, 255), clamp(g, 0, 255), clamp(b, 0, 255)


def normalize_version(version) -> str:
    """Strip a leading "V" and any "-build" suffix: "V1.2-0.4" -> "1.2"."""
    text = _VERSION_MARKERS.sub("", str(version).strip())
    return text or "0.0.0"
