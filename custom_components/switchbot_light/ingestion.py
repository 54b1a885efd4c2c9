"""Status ingestion: one parser per channel, merged into canonical state.

Each parser turns a channel-native payload into a ``StatusUpdate`` holding
only the fields that payload carried. ``apply_update`` performs the partial
merge, clamping every value into the device's declared range.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .const import (
    BRIGHTNESS_MAX,
    BRIGHTNESS_MIN,
    COLOR_TEMP_MIRED_MAX,
    COLOR_TEMP_MIRED_MIN,
    HUE_MAX,
    SATURATION_MAX,
)
from .conversions import clamp, kelvin_to_mired_clamped, normalize_version, parse_rgb, rgb_to_hs
from .errors import ErrorKind, OperationError
from .models import BlePayload, DeviceConfig, LightState, StatusSource, StatusUpdate

_LOGGER = logging.getLogger(__name__)

ParseResult = Tuple[Optional[StatusUpdate], Optional[OperationError]]


class _Malformed(Exception):
    pass


def _as_int(payload: Mapping[str, Any], key: str) -> Optional[int]:
    if key not in payload or payload[key] is None:
        return None
    value = payload[key]
    if isinstance(value, bool):
        raise _Malformed(f"{key}={value!r}")
    try:
        return int(round(float(value)))
    except (TypeError, ValueError) as ex:
        raise _Malformed(f"{key}={value!r}") from ex


def _as_power(payload: Mapping[str, Any], key: str) -> Optional[bool]:
    if key not in payload or payload[key] is None:
        return None
    value = payload[key]
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("on", "off"):
        return value.lower() == "on"
    raise _Malformed(f"{key}={value!r}")


def _color_temperature(payload: Mapping[str, Any], key: str) -> Optional[int]:
    """Kelvin in the payload -> mired; 0 means the light is not in CT mode."""
    kelvin = _as_int(payload, key)
    if kelvin is None or kelvin <= 0:
        return None
    return kelvin_to_mired_clamped(kelvin)


def _color(update: StatusUpdate, payload: Mapping[str, Any], key: str = "color") -> None:
    if key not in payload or payload[key] in (None, ""):
        return
    rgb = parse_rgb(payload[key])
    if rgb is None:
        raise _Malformed(f"{key}={payload[key]!r}")
    update.hue, update.saturation = rgb_to_hs(*rgb)


def parse_openapi_status(body: Any) -> ParseResult:
    """Polled status body: {power: "on", brightness, colorTemperature, version, color}."""
    if not isinstance(body, Mapping):
        return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"status body is {type(body).__name__}")
    update = StatusUpdate(StatusSource.OPENAPI)
    try:
        update.power = _as_power(body, "power")
        update.brightness = _as_int(body, "brightness")
        update.color_temperature = _color_temperature(body, "colorTemperature")
        _color(update, body)
    except _Malformed as ex:
        return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"OpenAPI status {ex}")
    if body.get("version"):
        update.firmware_version = normalize_version(body["version"])
    return update, None


def parse_webhook_context(context: Any) -> ParseResult:
    """Webhook context: {powerState: "ON", brightness, colorTemperature, color}."""
    if not isinstance(context, Mapping):
        return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"webhook context is {type(context).__name__}")
    update = StatusUpdate(StatusSource.WEBHOOK)
    try:
        update.power = _as_power(context, "powerState")
        update.brightness = _as_int(context, "brightness")
        update.color_temperature = _color_temperature(context, "colorTemperature")
        _color(update, context)
    except _Malformed as ex:
        return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"webhook {ex}")
    if context.get("version"):
        update.firmware_version = normalize_version(context["version"])
    return update, None


def parse_ble_payload(payload: Any) -> ParseResult:
    """Advertisement payload; usually power and color temperature only."""
    if not isinstance(payload, BlePayload):
        return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"BLE payload is {type(payload).__name__}")
    update = StatusUpdate(StatusSource.BLE)
    if payload.state is not None:
        if not isinstance(payload.state, bool):
            return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"BLE state={payload.state!r}")
        update.power = payload.state
    try:
        update.brightness = _as_int(vars(payload), "brightness")
        update.color_temperature = _color_temperature(vars(payload), "color_temperature")
    except _Malformed as ex:
        return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"BLE {ex}")
    return update, None


PARSERS: Dict[StatusSource, Callable[[Any], ParseResult]] = {
    StatusSource.OPENAPI: parse_openapi_status,
    StatusSource.WEBHOOK: parse_webhook_context,
    StatusSource.BLE: parse_ble_payload,
}


def apply_update(state: LightState, update: StatusUpdate, config: DeviceConfig) -> List[str]:
    """Merge the fields present in ``update`` into ``state``.

    Fields the device does not support are ignored. Returns the names of
    the fields that actually changed.
    """
    changed: List[str] = []

    def _set(name: str, value: Any) -> None:
        if getattr(state, name) != value:
            setattr(state, name, value)
            changed.append(name)

    if update.power is not None:
        _set("power", bool(update.power))
    if update.brightness is not None and config.supports_brightness:
        _set("brightness", clamp(update.brightness, BRIGHTNESS_MIN, BRIGHTNESS_MAX))
    if update.color_temperature is not None and config.supports_color_temp:
        _set(
            "color_temperature",
            clamp(update.color_temperature, COLOR_TEMP_MIRED_MIN, COLOR_TEMP_MIRED_MAX),
        )
    if update.hue is not None and config.supports_color:
        _set("hue", clamp(update.hue, 0, HUE_MAX - 1))
    if update.saturation is not None and config.supports_color:
        _set("saturation", clamp(update.saturation, 0, SATURATION_MAX))
    if update.firmware_version is not None:
        _set("firmware_version", update.firmware_version)

    _LOGGER.debug(
        "%s: merged %s update %s -> changed %s",
        config.name,
        update.source.value,
        update.present(),
        changed or "nothing",
    )
    return changed
