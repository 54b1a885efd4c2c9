"""Shared fixtures for the SwitchBot light tests."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.switchbot_light.accessory import LightAccessory
from custom_components.switchbot_light.models import ConnectionMode, DeviceConfig
from custom_components.switchbot_light.quirks import MODEL_CEILING_LIGHT

DEVICE_ID = "AABBCCDDEEFF"


class RecordingPublisher:
    """Collects every characteristic update in order."""

    def __init__(self):
        self.updates = []

    def update_characteristic(self, name, value):
        self.updates.append((name, value))

    def names(self):
        return [name for name, _ in self.updates]

    def clear(self):
        self.updates.clear()


@pytest.fixture
def make_config():
    def _make(**overrides) -> DeviceConfig:
        values = dict(
            device_id=DEVICE_ID,
            name="Test Light",
            device_type=MODEL_CEILING_LIGHT,
            connection_mode=ConnectionMode.REMOTE,
            has_credentials=True,
            push_rate=0.01,
            refresh_rate=3600,
        )
        values.update(overrides)
        return DeviceConfig(**values)

    return _make


@pytest.fixture
def cloud():
    client = MagicMock()
    client.get_status = AsyncMock(
        return_value=({"power": "on", "brightness": 40, "colorTemperature": 4000, "version": "V1.4-2"}, None)
    )
    client.send_command = AsyncMock(return_value=({}, None))
    client.setup_webhook = AsyncMock(return_value=({}, None))
    client.delete_webhook = AsyncMock(return_value=({}, None))
    client.close = AsyncMock()
    return client


@pytest.fixture
async def make_accessory(cloud):
    """Build accessories that are stopped at teardown; returns (accessory, publisher)."""
    created = []

    def _make(config, **kwargs):
        publisher = kwargs.pop("publisher", None) or RecordingPublisher()
        kwargs.setdefault("cloud", cloud)
        kwargs.setdefault("backoff", 0)
        acc = LightAccessory(config, publisher, **kwargs)
        created.append(acc)
        return acc, publisher

    yield _make
    for acc in created:
        await acc.stop()
