"""Configuration schema for the SwitchBot light integration."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Tuple

import voluptuous as vol

from .const import (
    CONF_ADAPTIVE_LIGHTING_SHIFT,
    CONF_BLE,
    CONF_CONNECTION_TYPE,
    CONF_DEVICE_ID,
    CONF_DEVICE_NAME,
    CONF_DEVICE_TYPE,
    CONF_DEVICES,
    CONF_ENABLE_CLOUD_SERVICE,
    CONF_MAX_RETRY,
    CONF_MIN_STEP,
    CONF_OFFLINE,
    CONF_OPTIONS,
    CONF_PUSH_RATE,
    CONF_REFRESH_RATE,
    CONF_SECRET,
    CONF_TOKEN,
    CONF_WEBHOOK,
    CONF_WEBHOOK_PATH,
    CONF_WEBHOOK_PORT,
    CONF_WEBHOOK_URL,
    DEFAULT_MAX_RETRY,
    DEFAULT_PUSH_RATE,
    DEFAULT_REFRESH_RATE,
    DEFAULT_WEBHOOK_PATH,
    DEFAULT_WEBHOOK_PORT,
)
from .models import ConnectionMode, DeviceConfig, PlatformConfig
from .quirks import MODEL_CEILING_LIGHT, SUPPORTED_DEVICE_TYPES

_LOGGER = logging.getLogger(__name__)

_DEVICE_ID_RE = re.compile(r"^[0-9A-Fa-f]{2}([:-]?[0-9A-Fa-f]{2}){5}$")


def device_id(value: Any) -> str:
    """Validate a 12 hex digit device id, separators optional."""
    text = str(value).strip()
    if not _DEVICE_ID_RE.match(text):
        raise vol.Invalid(f"invalid device id: {value!r}")
    return text.replace(":", "").replace("-", "").upper()


_positive_float = vol.All(vol.Coerce(float), vol.Range(min=0))

OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_REFRESH_RATE, default=DEFAULT_REFRESH_RATE): vol.All(
            vol.Coerce(float), vol.Range(min=5)
        ),
        vol.Optional(CONF_PUSH_RATE, default=DEFAULT_PUSH_RATE): _positive_float,
        vol.Optional(CONF_MAX_RETRY, default=DEFAULT_MAX_RETRY): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=10)
        ),
        vol.Optional(CONF_WEBHOOK, default=False): bool,
        vol.Optional(CONF_WEBHOOK_PORT, default=DEFAULT_WEBHOOK_PORT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=65535)
        ),
        vol.Optional(CONF_WEBHOOK_PATH, default=DEFAULT_WEBHOOK_PATH): vol.All(
            str, vol.Match(r"^/")
        ),
        vol.Optional(CONF_WEBHOOK_URL): vol.Url(),
        vol.Optional(CONF_BLE, default=False): bool,
    },
    extra=vol.REMOVE_EXTRA,
)

DEVICE_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_DEVICE_ID): device_id,
        vol.Optional(CONF_DEVICE_NAME): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_DEVICE_TYPE, default=MODEL_CEILING_LIGHT): vol.In(SUPPORTED_DEVICE_TYPES),
        vol.Optional(CONF_CONNECTION_TYPE, default=ConnectionMode.REMOTE.value): vol.In(
            [m.value for m in ConnectionMode]
        ),
        vol.Optional(CONF_ENABLE_CLOUD_SERVICE, default=True): bool,
        vol.Optional(CONF_OFFLINE, default=False): bool,
        vol.Optional(CONF_REFRESH_RATE): vol.All(vol.Coerce(float), vol.Range(min=5)),
        vol.Optional(CONF_PUSH_RATE): _positive_float,
        vol.Optional(CONF_MAX_RETRY): vol.All(vol.Coerce(int), vol.Range(min=1, max=10)),
        vol.Optional(CONF_WEBHOOK): bool,
        vol.Optional(CONF_MIN_STEP, default=1): vol.All(vol.Coerce(int), vol.Range(min=1, max=100)),
        vol.Optional(CONF_ADAPTIVE_LIGHTING_SHIFT, default=0): vol.All(
            vol.Coerce(int), vol.Range(min=-1)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)

PLATFORM_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_TOKEN): vol.Any(None, str),
        vol.Optional(CONF_SECRET): vol.Any(None, str),
        vol.Optional(CONF_OPTIONS, default={}): OPTIONS_SCHEMA,
        vol.Optional(CONF_DEVICES, default=[]): [DEVICE_SCHEMA],
    },
    extra=vol.REMOVE_EXTRA,
)


def load_config(raw: Dict[str, Any]) -> Tuple[PlatformConfig, List[DeviceConfig]]:
    """Validate raw config; raises ``vol.Invalid`` on bad input."""
    data = PLATFORM_SCHEMA(raw or {})
    opts = data[CONF_OPTIONS]
    platform = PlatformConfig(
        token=data.get(CONF_TOKEN) or None,
        secret=data.get(CONF_SECRET) or None,
        refresh_rate=opts[CONF_REFRESH_RATE],
        push_rate=opts[CONF_PUSH_RATE],
        max_retries=opts[CONF_MAX_RETRY],
        webhook=opts[CONF_WEBHOOK],
        webhook_port=opts[CONF_WEBHOOK_PORT],
        webhook_path=opts[CONF_WEBHOOK_PATH],
        webhook_url=opts.get(CONF_WEBHOOK_URL),
        ble=opts[CONF_BLE],
    )

    devices: List[DeviceConfig] = []
    seen = set()
    for dev in data[CONF_DEVICES]:
        dev_id = dev[CONF_DEVICE_ID]
        if dev_id in seen:
            _LOGGER.warning("Duplicate device %s in config; keeping the first entry", dev_id)
            continue
        seen.add(dev_id)
        devices.append(
            DeviceConfig(
                device_id=dev_id,
                name=dev.get(CONF_DEVICE_NAME) or dev_id,
                device_type=dev[CONF_DEVICE_TYPE],
                connection_mode=ConnectionMode(dev[CONF_CONNECTION_TYPE]),
                has_credentials=platform.has_credentials,
                enable_cloud_service=dev[CONF_ENABLE_CLOUD_SERVICE],
                offline=dev[CONF_OFFLINE],
                refresh_rate=dev.get(CONF_REFRESH_RATE, platform.refresh_rate),
                push_rate=dev.get(CONF_PUSH_RATE, platform.push_rate),
                max_retries=dev.get(CONF_MAX_RETRY, platform.max_retries),
                webhook=dev.get(CONF_WEBHOOK, platform.webhook),
                ble_listen=platform.ble,
                min_step=dev[CONF_MIN_STEP],
                adaptive_lighting_shift=dev[CONF_ADAPTIVE_LIGHTING_SHIFT],
            )
        )
    _LOGGER.debug(
        "Loaded config: %s devices, credentials=%s webhook=%s ble=%s",
        len(devices),
        platform.has_credentials,
        platform.webhook,
        platform.ble,
    )
    return platform, devices
