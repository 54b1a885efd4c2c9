"""Model-specific capabilities for SwitchBot lights.

Color temperature ranges and BLE identifiers per device type, so one
generic accessory can drive every supported light.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class Quirk:
    device_type: str
    # Advertisement model identifiers accepted for this type
    ble_models: FrozenSet[str] = frozenset()
    # Command frame prefix for direct BLE control
    ble_command_header: Optional[str] = None
    # Kelvin range accepted by setColorTemperature
    color_temp_range: Optional[Tuple[int, int]] = None
    supports_color: bool = False
    supports_brightness: bool = True

    @property
    def supports_color_temp(self) -> bool:
        return self.color_temp_range is not None


MODEL_CEILING_LIGHT = "Ceiling Light"
MODEL_CEILING_LIGHT_PRO = "Ceiling Light Pro"
MODEL_COLOR_BULB = "Color Bulb"
MODEL_STRIP_LIGHT = "Strip Light"

# Advertisement model char -> display name
BLE_MODEL_NAMES: Dict[str, str] = {
    "q": "WoCeilingLight",
    "n": "WoCeilingLightPro",
    "u": "WoBulb",
    "r": "WoStrip",
}

_QUIRKS: Dict[str, Quirk] = {
    MODEL_CEILING_LIGHT: Quirk(
        MODEL_CEILING_LIGHT,
        ble_models=frozenset({"q", "n"}),
        ble_command_header="570F5401",
        color_temp_range=(2700, 6500),
    ),
    MODEL_CEILING_LIGHT_PRO: Quirk(
        MODEL_CEILING_LIGHT_PRO,
        ble_models=frozenset({"q", "n"}),
        ble_command_header="570F5401",
        color_temp_range=(2700, 6500),
    ),
    MODEL_COLOR_BULB: Quirk(
        MODEL_COLOR_BULB,
        ble_models=frozenset({"u"}),
        ble_command_header="570F4701",
        color_temp_range=(2700, 6500),
        supports_color=True,
    ),
    MODEL_STRIP_LIGHT: Quirk(
        MODEL_STRIP_LIGHT,
        ble_models=frozenset({"r"}),
        ble_command_header="570F4901",
        supports_color=True,
    ),
}

SUPPORTED_DEVICE_TYPES = tuple(_QUIRKS)


def resolve_quirk(device_type: str) -> Optional[Quirk]:
    """Return the capability definition for the device type if known."""
    return _QUIRKS.get(device_type)
