"""The SwitchBot light integration."""
import logging

import voluptuous as vol

from .config import PLATFORM_SCHEMA, load_config
from .const import DOMAIN

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[str] = ["light"]

CONFIG_SCHEMA = vol.Schema({DOMAIN: PLATFORM_SCHEMA}, extra=vol.ALLOW_EXTRA)


async def async_setup(hass, config: dict):
    """Set up SwitchBot lights from the ``switchbot_light:`` YAML block."""
    from homeassistant.const import EVENT_HOMEASSISTANT_STOP  # type: ignore
    from homeassistant.helpers import discovery  # type: ignore

    from .hub import SwitchBotHub

    hass.data.setdefault(DOMAIN, {})
    if DOMAIN not in config:
        return True

    try:
        platform, devices = load_config(config[DOMAIN])
    except vol.Invalid as ex:
        _LOGGER.error("Invalid %s configuration: %s", DOMAIN, ex)
        return False

    hub = await SwitchBotHub.create(platform, hass.config.config_dir, hass=hass)
    hass.data[DOMAIN]["hub"] = hub
    hass.data[DOMAIN]["devices"] = devices

    async def _async_stop(_event) -> None:
        await async_unload(hass)

    hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _async_stop)

    for platform_name in PLATFORMS:
        hass.async_create_task(
            discovery.async_load_platform(hass, platform_name, DOMAIN, {}, config)
        )
    return True


async def async_unload(hass) -> None:
    """Stop every accessory and persist the published state."""
    hub = hass.data.get(DOMAIN, {}).pop("hub", None)
    if hub is None:
        return
    try:
        await hub.stop()
    except Exception as ex:
        _LOGGER.warning("Error while stopping SwitchBot hub: %s", ex)
