import asyncio
from unittest.mock import AsyncMock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from custom_components.switchbot_light.webhook import WebhookServer, webhook_key


@pytest.fixture
async def receiver():
    server = WebhookServer("/switchbot")
    handler = AsyncMock()
    server.register("AABBCCDDEEFF", handler)
    async with TestClient(TestServer(server.app)) as client:
        yield client, handler


async def test_push_is_dispatched_by_device_mac(receiver):
    client, handler = receiver
    context = {"deviceType": "Ceiling Light", "deviceMac": "aa:bb:cc:dd:ee:ff", "powerState": "ON"}

    resp = await client.post(
        "/switchbot", json={"eventType": "changeReport", "eventVersion": "1", "context": context}
    )
    assert resp.status == 200
    await asyncio.sleep(0)

    handler.assert_awaited_once_with(context)


async def test_unknown_device_is_accepted_and_ignored(receiver):
    client, handler = receiver
    resp = await client.post("/switchbot", json={"context": {"deviceMac": "112233445566"}})
    assert resp.status == 200
    assert (await resp.json())["status"] == "ignored"
    handler.assert_not_awaited()


async def test_invalid_body_is_rejected(receiver):
    client, handler = receiver
    resp = await client.post("/switchbot", data="not json")
    assert resp.status == 400

    resp = await client.post("/switchbot", json={"eventType": "changeReport"})
    assert resp.status == 400
    handler.assert_not_awaited()


def test_webhook_key():
    assert webhook_key("aa:bb:cc:dd:ee:ff") == "AABBCCDDEEFF"


def test_path_is_made_absolute():
    assert WebhookServer("hook").path == "/hook"
