import pytest
import voluptuous as vol

from custom_components.switchbot_light.config import load_config
from custom_components.switchbot_light.models import ConnectionMode


def test_minimal_config_uses_defaults():
    platform, devices = load_config(
        {"token": "tok", "secret": "sec", "devices": [{"deviceId": "aa:bb:cc:dd:ee:ff"}]}
    )
    assert platform.has_credentials
    assert platform.refresh_rate == 360
    assert platform.push_rate == 0.1
    assert platform.webhook_port == 8090
    assert platform.webhook_path == "/"

    (dev,) = devices
    assert dev.device_id == "AABBCCDDEEFF"
    assert dev.name == "AABBCCDDEEFF"
    assert dev.device_type == "Ceiling Light"
    assert dev.connection_mode == ConnectionMode.REMOTE
    assert dev.has_credentials
    assert dev.enable_cloud_service
    assert not dev.offline
    assert dev.max_retries == 3
    assert dev.ble_mac == "AA:BB:CC:DD:EE:FF"
    assert dev.adaptive_lighting


def test_device_values_fall_back_to_platform_options():
    _platform, devices = load_config(
        {
            "token": "tok",
            "secret": "sec",
            "options": {"refreshRate": 60, "pushRate": 0.5, "maxRetry": 5, "webhook": True, "BLE": True},
            "devices": [
                {"deviceId": "AABBCCDDEEFF"},
                {"deviceId": "112233445566", "refreshRate": 30, "webhook": False, "connectionType": "BLE/OpenAPI"},
            ],
        }
    )
    first, second = devices
    assert (first.refresh_rate, first.push_rate, first.max_retries, first.webhook) == (60, 0.5, 5, True)
    assert first.ble_listen
    assert second.refresh_rate == 30
    assert second.webhook is False
    assert second.connection_mode == ConnectionMode.DUAL


def test_missing_secret_means_no_credentials():
    platform, devices = load_config({"token": "tok", "devices": [{"deviceId": "AABBCCDDEEFF"}]})
    assert not platform.has_credentials
    assert not devices[0].has_credentials


def test_adaptive_lighting_can_be_disabled():
    _platform, devices = load_config(
        {"devices": [{"deviceId": "AABBCCDDEEFF", "adaptiveLightingShift": -1}]}
    )
    assert not devices[0].adaptive_lighting


def test_duplicate_devices_are_skipped():
    _platform, devices = load_config(
        {
            "devices": [
                {"deviceId": "AABBCCDDEEFF", "configDeviceName": "First"},
                {"deviceId": "aa-bb-cc-dd-ee-ff", "configDeviceName": "Second"},
            ]
        }
    )
    assert [d.name for d in devices] == ["First"]


@pytest.mark.parametrize(
    "device",
    [
        {"deviceId": "not-a-mac"},
        {"deviceId": "AABBCCDDEEFF", "connectionType": "Zigbee"},
        {"deviceId": "AABBCCDDEEFF", "deviceType": "Curtain"},
        {"deviceId": "AABBCCDDEEFF", "maxRetry": 0},
        {},
    ],
)
def test_invalid_device_config_raises(device):
    with pytest.raises(vol.Invalid):
        load_config({"devices": [device]})


def test_webhook_path_must_be_absolute():
    with pytest.raises(vol.Invalid):
        load_config({"options": {"webhookPath": "hook"}})
