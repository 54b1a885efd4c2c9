"""SwitchBot light platform."""
import logging
from typing import Any

from homeassistant.components.light import (
    ATTR_BRIGHTNESS,
    ATTR_COLOR_TEMP_KELVIN,
    ATTR_HS_COLOR,
    ColorMode,
    LightEntity,
)
from homeassistant.util.color import brightness_to_value, value_to_brightness

from .accessory import LightAccessory
from .const import CHAR_FIRMWARE_REVISION, COLOR_TEMP_MIRED_MIN, DOMAIN
from .conversions import kelvin_to_mired, mired_to_kelvin
from .errors import OperationError
from .models import DeviceConfig

_LOGGER = logging.getLogger(__name__)

BRIGHTNESS_SCALE = (1, 100)


async def async_setup_platform(hass, config, async_add_entities, discovery_info=None):
    """Create one entity per configured light and start the hub."""
    if discovery_info is None:
        return
    data = hass.data[DOMAIN]
    hub = data["hub"]
    entities = []
    for device in data["devices"]:
        entity = SwitchBotLightEntity(device)
        entity.accessory = hub.add_accessory(device, entity)
        entities.append(entity)
    _LOGGER.debug("Registering %s SwitchBot light entities", len(entities))
    async_add_entities(entities)
    hass.async_create_task(hub.start())


class SwitchBotLightEntity(LightEntity):
    """Home Assistant view of one ``LightAccessory``; also its characteristic publisher."""

    _attr_should_poll = False

    def __init__(self, config: DeviceConfig):
        self._config = config
        self.accessory: LightAccessory | None = None
        self._attr_name = config.name
        self._attr_unique_id = f"switchbot_{config.device_id}"
        self._attr_available = True
        self._firmware: str | None = None

    def update_characteristic(self, name: str, value: Any) -> None:
        if isinstance(value, OperationError):
            self._attr_available = False
        else:
            self._attr_available = True
            if name == CHAR_FIRMWARE_REVISION:
                self._firmware = value
        if self.hass is not None:
            self.async_write_ha_state()

    @property
    def _state(self):
        return self.accessory.state if self.accessory else None

    @property
    def is_on(self):
        state = self._state
        return state.power if state else None

    @property
    def brightness(self):
        state = self._state
        if not state or state.brightness is None:
            return None
        return value_to_brightness(BRIGHTNESS_SCALE, max(1, state.brightness))

    @property
    def hs_color(self):
        state = self._state
        if not state or not self._config.supports_color or state.hue is None:
            return None
        return (float(state.hue), float(state.saturation or 0))

    @property
    def color_temp_kelvin(self):
        state = self._state
        if not state or not self._config.supports_color_temp or state.color_temperature is None:
            return None
        return mired_to_kelvin(state.color_temperature)

    @property
    def min_color_temp_kelvin(self) -> int:
        return self._config.color_temp_kelvin_range[0]

    @property
    def max_color_temp_kelvin(self) -> int:
        return self._config.color_temp_kelvin_range[1]

    @property
    def supported_color_modes(self) -> set[ColorMode]:
        modes = set()
        if self._config.supports_color:
            modes.add(ColorMode.HS)
        if self._config.supports_color_temp:
            modes.add(ColorMode.COLOR_TEMP)
        if not modes:
            modes.add(ColorMode.BRIGHTNESS if self._config.supports_brightness else ColorMode.ONOFF)
        return modes

    @property
    def color_mode(self) -> ColorMode:
        state = self._state
        modes = self.supported_color_modes
        if ColorMode.HS in modes and (
            ColorMode.COLOR_TEMP not in modes
            or (state and state.color_temperature == COLOR_TEMP_MIRED_MIN and state.saturation)
        ):
            return ColorMode.HS
        return next(iter(modes - {ColorMode.HS}), ColorMode.HS)

    @property
    def device_info(self):
        return {
            "identifiers": {(DOMAIN, self._config.device_id)},
            "name": self._config.name,
            "manufacturer": "SwitchBot",
            "model": self._config.device_type,
            "sw_version": self._firmware,
        }

    @property
    def extra_state_attributes(self):
        return {"adaptive_lighting_shift": self._config.adaptive_lighting_shift}

    async def async_turn_on(self, **kwargs):
        acc = self.accessory
        if acc is None:
            return
        acc.set_on(True)
        if ATTR_BRIGHTNESS in kwargs:
            acc.set_brightness(brightness_to_value(BRIGHTNESS_SCALE, kwargs[ATTR_BRIGHTNESS]))
        # Color wins over color temperature when both are given
        if ATTR_HS_COLOR in kwargs:
            hue, saturation = kwargs[ATTR_HS_COLOR]
            acc.set_color(hue, saturation)
        elif ATTR_COLOR_TEMP_KELVIN in kwargs:
            acc.set_color_temperature(kelvin_to_mired(kwargs[ATTR_COLOR_TEMP_KELVIN]))
        self.async_write_ha_state()

    async def async_turn_off(self, **kwargs):
        acc = self.accessory
        if acc is None:
            return
        acc.set_on(False)
        self.async_write_ha_state()
