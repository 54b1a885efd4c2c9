"""Models for the SwitchBot light integration."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .const import (
    CHAR_BRIGHTNESS,
    CHAR_COLOR_TEMPERATURE,
    CHAR_FIRMWARE_REVISION,
    CHAR_HUE,
    CHAR_ON,
    CHAR_SATURATION,
    COLOR_TEMP_KELVIN_MAX,
    COLOR_TEMP_KELVIN_MIN,
    COLOR_TEMP_MIRED_MIN,
    DEFAULT_MAX_RETRY,
    DEFAULT_PUSH_RATE,
    DEFAULT_REFRESH_RATE,
)
from .quirks import resolve_quirk


class ConnectionMode(Enum):
    LOCAL = "BLE"
    REMOTE = "OpenAPI"
    DUAL = "BLE/OpenAPI"


class Transport(Enum):
    LOCAL = "BLE"
    REMOTE = "OpenAPI"


class StatusSource(Enum):
    OPENAPI = "openapi"
    WEBHOOK = "webhook"
    BLE = "ble"


class CommandKind(Enum):
    POWER = "power"
    BRIGHTNESS = "brightness"
    COLOR_TEMPERATURE = "colorTemperature"
    COLOR = "color"


# Canonical field -> host characteristic, in publish order
CHARACTERISTICS: Tuple[Tuple[str, str], ...] = (
    ("power", CHAR_ON),
    ("brightness", CHAR_BRIGHTNESS),
    ("color_temperature", CHAR_COLOR_TEMPERATURE),
    ("hue", CHAR_HUE),
    ("saturation", CHAR_SATURATION),
    ("firmware_version", CHAR_FIRMWARE_REVISION),
)


@dataclass
class LightState:
    power: bool = False
    brightness: Optional[int] = None
    hue: Optional[int] = None
    saturation: Optional[int] = None
    # mired
    color_temperature: Optional[int] = None
    firmware_version: Optional[str] = None

    def copy(self) -> "LightState":
        return replace(self)

    def diff(self, other: "LightState") -> Dict[str, Any]:
        """Fields whose value here differs from ``other``."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) != getattr(other, f.name)
        }

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LightState":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def defaults(cls, config: "DeviceConfig") -> "LightState":
        """Placeholder values used before the first successful status read."""
        return cls(
            power=False,
            brightness=0 if config.supports_brightness else None,
            hue=0 if config.supports_color else None,
            saturation=0 if config.supports_color else None,
            color_temperature=COLOR_TEMP_MIRED_MIN if config.supports_color_temp else None,
        )


@dataclass
class StatusUpdate:
    """Partial state parsed from one channel; None means "not in payload"."""

    source: StatusSource
    power: Optional[bool] = None
    brightness: Optional[int] = None
    hue: Optional[int] = None
    saturation: Optional[int] = None
    color_temperature: Optional[int] = None
    firmware_version: Optional[str] = None

    def present(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "source" and getattr(self, f.name) is not None
        }

    def without(self, names) -> "StatusUpdate":
        """Copy with the given fields treated as absent."""
        names = [name for name in names if name != "source"]
        if not names:
            return self
        return replace(self, **{name: None for name in names})


@dataclass
class BlePayload:
    """Parsed SwitchBot advertisement."""

    address: str
    model: str
    model_name: str
    state: Optional[bool] = None
    brightness: Optional[int] = None
    # Kelvin, as advertised
    color_temperature: Optional[int] = None
    rssi: Optional[int] = None


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    command: str
    parameter: Any = "default"
    command_type: str = "command"
    # Canonical values this command makes true on the device
    fields: Tuple[Tuple[str, Any], ...] = ()

    def body(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "parameter": self.parameter,
            "commandType": self.command_type,
        }


@dataclass
class CommandBatch:
    commands: List[Command] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.commands)

    def __iter__(self):
        return iter(self.commands)

    def __len__(self) -> int:
        return len(self.commands)

    @property
    def names(self) -> List[str]:
        return [c.command for c in self.commands]


@dataclass(frozen=True)
class PlatformConfig:
    token: Optional[str] = None
    secret: Optional[str] = None
    refresh_rate: float = DEFAULT_REFRESH_RATE
    push_rate: float = DEFAULT_PUSH_RATE
    max_retries: int = DEFAULT_MAX_RETRY
    webhook: bool = False
    webhook_port: int = 8090
    webhook_path: str = "/"
    webhook_url: Optional[str] = None
    ble: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.token and self.secret)


@dataclass(frozen=True)
class DeviceConfig:
    """Immutable per-accessory configuration and capability descriptor."""

    device_id: str
    name: str
    device_type: str
    connection_mode: ConnectionMode = ConnectionMode.REMOTE
    has_credentials: bool = False
    enable_cloud_service: bool = True
    offline: bool = False
    refresh_rate: float = DEFAULT_REFRESH_RATE
    push_rate: float = DEFAULT_PUSH_RATE
    max_retries: int = DEFAULT_MAX_RETRY
    webhook: bool = False
    ble_listen: bool = False
    min_step: int = 1
    adaptive_lighting_shift: int = 0

    @property
    def ble_mac(self) -> str:
        """Device id formatted as a MAC: "AABBCCDDEEFF" -> "AA:BB:CC:DD:EE:FF"."""
        raw = self.webhook_key
        return ":".join(raw[i:i + 2] for i in range(0, len(raw), 2))

    @property
    def webhook_key(self) -> str:
        return "".join(ch for ch in self.device_id.upper() if ch.isalnum())

    @property
    def adaptive_lighting(self) -> bool:
        return self.adaptive_lighting_shift >= 0

    @property
    def _quirk(self):
        return resolve_quirk(self.device_type)

    @property
    def supports_brightness(self) -> bool:
        quirk = self._quirk
        return quirk.supports_brightness if quirk else True

    @property
    def supports_color(self) -> bool:
        quirk = self._quirk
        return bool(quirk and quirk.supports_color)

    @property
    def supports_color_temp(self) -> bool:
        quirk = self._quirk
        return bool(quirk and quirk.supports_color_temp)

    @property
    def color_temp_kelvin_range(self) -> Tuple[int, int]:
        quirk = self._quirk
        if quirk and quirk.color_temp_range:
            return quirk.color_temp_range
        return COLOR_TEMP_KELVIN_MIN, COLOR_TEMP_KELVIN_MAX

    @property
    def ble_models(self) -> FrozenSet[str]:
        quirk = self._quirk
        return quirk.ble_models if quirk else frozenset()

    @property
    def ble_command_header(self) -> Optional[str]:
        quirk = self._quirk
        return quirk.ble_command_header if quirk else None
