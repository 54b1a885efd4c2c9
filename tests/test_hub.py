from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.switchbot_light.hub import SwitchBotHub
from custom_components.switchbot_light.models import ConnectionMode, LightState, PlatformConfig
from custom_components.switchbot_light.storage import StateStorage


def _listener():
    listener = MagicMock()
    listener.register = MagicMock(return_value=MagicMock())
    listener.start = AsyncMock()
    listener.stop = AsyncMock()
    return listener


@pytest.fixture
def platform():
    return PlatformConfig(token="tok", secret="sec", webhook=True, webhook_url="https://example.invalid/hook", ble=True)


async def test_accessory_registers_enabled_channels(platform, make_config, cloud, tmp_path):
    webhook, scanner = _listener(), _listener()
    factory = MagicMock()
    hub = SwitchBotHub(
        platform, cloud=cloud, scanner=scanner, webhook=webhook, storage=StateStorage(str(tmp_path)),
        ble_device_factory=factory,
    )

    hub.add_accessory(make_config(webhook=True, ble_listen=True, connection_mode=ConnectionMode.DUAL), MagicMock())
    hub.add_accessory(make_config(device_id="112233445566"), MagicMock())

    webhook.register.assert_called_once()
    assert webhook.register.call_args.args[0] == "AABBCCDDEEFF"
    scanner.register.assert_called_once()
    assert scanner.register.call_args.args[0] == "AA:BB:CC:DD:EE:FF"
    factory.assert_called_once_with("AA:BB:CC:DD:EE:FF", "570F5401", name="Test Light")
    assert hub.get("112233445566") is not None


async def test_start_and_stop_lifecycle(platform, make_config, cloud, tmp_path):
    webhook, scanner = _listener(), _listener()
    storage = StateStorage(str(tmp_path))
    hub = SwitchBotHub(platform, cloud=cloud, scanner=scanner, webhook=webhook, storage=storage)
    acc = hub.add_accessory(make_config(webhook=True, ble_listen=True), MagicMock())

    await hub.start()

    cloud.get_status.assert_awaited_once()
    webhook.start.assert_awaited_once()
    scanner.start.assert_awaited_once()
    cloud.setup_webhook.assert_awaited_once_with("https://example.invalid/hook")

    await hub.stop()

    cloud.delete_webhook.assert_awaited_once()
    webhook.stop.assert_awaited_once()
    scanner.stop.assert_awaited_once()
    cloud.close.assert_awaited_once()
    assert await storage.read() == {"AABBCCDDEEFF": acc.cached}


async def test_stored_state_seeds_accessory(platform, make_config, cloud, tmp_path):
    storage = StateStorage(str(tmp_path))
    stored = LightState(power=True, brightness=33, color_temperature=222)
    await storage.write({"AABBCCDDEEFF": stored})

    hub = SwitchBotHub(platform, cloud=cloud, storage=storage)
    await hub.load_state()
    acc = hub.add_accessory(make_config(), MagicMock())

    assert acc.state == stored
    assert acc.cached == stored


async def test_listeners_stay_off_when_no_device_uses_them(platform, make_config, cloud):
    webhook, scanner = _listener(), _listener()
    hub = SwitchBotHub(platform, cloud=cloud, scanner=scanner, webhook=webhook)
    hub.add_accessory(make_config(), MagicMock())

    await hub.start()
    await hub.stop()

    webhook.start.assert_not_awaited()
    scanner.start.assert_not_awaited()
    cloud.setup_webhook.assert_not_awaited()
