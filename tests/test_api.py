import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from custom_components.switchbot_light.api import SwitchBotCloudClient, sign_request, status_message
from custom_components.switchbot_light.errors import ErrorKind


@pytest.fixture
async def server():
    received = []

    async def devices(request):
        received.append(request)
        return web.json_response(
            {"statusCode": 100, "body": {"deviceList": [{"deviceId": "AABBCCDDEEFF", "deviceType": "Ceiling Light"}]}}
        )

    async def status(request):
        received.append(request)
        device = request.match_info["device"]
        if device == "OFFLINE":
            return web.json_response({"statusCode": 161, "message": "device offline", "body": {}})
        if device == "BROKEN":
            return web.Response(status=500, text="upstream error")
        if device == "GARBAGE":
            return web.Response(text="<html>nope</html>")
        if device == "LISTBODY":
            return web.json_response({"statusCode": 100, "body": []})
        return web.json_response(
            {"statusCode": 100, "body": {"deviceId": device, "power": "on", "brightness": 55}}
        )

    async def commands(request):
        received.append(request)
        payload = await request.json()
        return web.json_response({"statusCode": 100, "body": {"echo": payload}})

    async def webhook(request):
        received.append(request)
        payload = await request.json()
        return web.json_response({"statusCode": 100, "body": {"action": payload["action"]}})

    app = web.Application()
    app.router.add_get("/v1.1/devices", devices)
    app.router.add_get("/v1.1/devices/{device}/status", status)
    app.router.add_post("/v1.1/devices/{device}/commands", commands)
    app.router.add_post("/v1.1/webhook/{action}", webhook)

    async with TestServer(app) as srv:
        srv.received = received
        yield srv


@pytest.fixture
async def client(server):
    async with aiohttp.ClientSession() as session:
        api = await SwitchBotCloudClient.create(
            "token", "secret", session=session, base_url=str(server.make_url("/"))
        )
        yield api
        await api.close()


def test_sign_request_is_deterministic_for_same_inputs():
    first = sign_request("token", "secret", t="1700000000000", nonce="abc")
    second = sign_request("token", "secret", t="1700000000000", nonce="abc")
    other = sign_request("token", "secret", t="1700000000000", nonce="xyz")

    assert first == second
    assert first["sign"] != other["sign"]
    assert first["sign"] == first["sign"].upper()
    assert len(first["sign"]) == 44
    assert first["Authorization"] == "token"


def test_status_message():
    assert status_message(161) == "Device is offline"
    assert status_message(999) == "Unknown statusCode: 999"


async def test_get_devices(client, server):
    devices, err = await client.get_devices()
    assert err is None
    assert devices[0]["deviceId"] == "AABBCCDDEEFF"
    headers = server.received[-1].headers
    for name in ("Authorization", "sign", "t", "nonce"):
        assert name in headers


async def test_get_status(client):
    body, err = await client.get_status("AABBCCDDEEFF")
    assert err is None
    assert body["power"] == "on"
    assert client.request_count == 1


async def test_send_command_payload(client):
    body, err = await client.send_command("AABBCCDDEEFF", "setColor", "255:0:0")
    assert err is None
    assert body["echo"] == {"command": "setColor", "parameter": "255:0:0", "commandType": "command"}


async def test_non_success_status_code(client):
    body, err = await client.get_status("OFFLINE")
    assert body is None
    assert err.kind == ErrorKind.BAD_STATUS_CODE
    assert err.status_code == 161
    assert err.message == "Device is offline"


async def test_http_error(client):
    _body, err = await client.get_status("BROKEN")
    assert err.kind == ErrorKind.BAD_STATUS_CODE
    assert err.status_code == 500


async def test_invalid_json(client):
    _body, err = await client.get_status("GARBAGE")
    assert err.kind == ErrorKind.MALFORMED_PAYLOAD


async def test_status_body_must_be_object(client):
    _body, err = await client.get_status("LISTBODY")
    assert err.kind == ErrorKind.MALFORMED_PAYLOAD


async def test_webhook_management(client, server):
    body, err = await client.setup_webhook("http://example.invalid/hook")
    assert err is None
    assert body == {"action": "setupWebhook"}
    _body, err = await client.query_webhook()
    assert err is None
    _body, err = await client.delete_webhook("http://example.invalid/hook")
    assert err is None
    assert [r.path for r in server.received] == [
        "/v1.1/webhook/setupWebhook",
        "/v1.1/webhook/queryWebhook",
        "/v1.1/webhook/deleteWebhook",
    ]


async def test_closed_client_reports_transport_unavailable(client):
    await client.close()
    _body, err = await client.get_status("AABBCCDDEEFF")
    assert err.kind == ErrorKind.TRANSPORT_UNAVAILABLE


async def test_unreachable_host():
    async with aiohttp.ClientSession() as session:
        api = await SwitchBotCloudClient.create("t", "s", session=session, base_url="http://127.0.0.1:1")
        _body, err = await api.get_status("AABBCCDDEEFF")
    assert err.kind == ErrorKind.TRANSPORT_UNAVAILABLE
