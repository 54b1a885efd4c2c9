"""Minimal SwitchBot OpenAPI v1.1 client."""
import aiohttp
import asyncio
import base64
import certifi
import hashlib
import hmac
import logging
import ssl
import time
import uuid
from aiohttp import ClientSession
from typing import Any, Dict, List, Optional, Tuple

from .const import (
    OPENAPI_BASE_URL,
    OPENAPI_STATUS_MESSAGES,
    OPENAPI_SUCCESS_CODES,
    OPENAPI_VERSION,
)
from .errors import ErrorKind, OperationError

_LOGGER = logging.getLogger(__name__)

_REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30)

Result = Tuple[Any, Optional[OperationError]]


def status_message(code: int | None) -> str:
    if code is None:
        return "missing statusCode"
    return OPENAPI_STATUS_MESSAGES.get(code, f"Unknown statusCode: {code}")


def sign_request(token: str, secret: str, *, t: str | None = None, nonce: str | None = None) -> Dict[str, str]:
    """Build the signed OpenAPI v1.1 auth headers."""
    t = t or str(int(time.time() * 1000))
    nonce = nonce or str(uuid.uuid4())
    string_to_sign = f"{token}{t}{nonce}".encode("utf-8")
    sign = base64.b64encode(
        hmac.new(secret.encode("utf-8"), msg=string_to_sign, digestmod=hashlib.sha256).digest()
    ).decode("utf-8")
    return {
        "Authorization": token,
        "sign": sign.upper(),
        "t": t,
        "nonce": nonce,
        "Content-Type": "application/json; charset=utf8",
    }


class SwitchBotCloudClient:
    def __init__(self, token: str, secret: str, *, base_url: str = OPENAPI_BASE_URL):
        self._token = token
        self._secret = secret
        self._base = f"{base_url.rstrip('/')}/{OPENAPI_VERSION}"
        self._session: aiohttp.ClientSession | None = None
        self._owns_session = True
        self._ssl_context: ssl.SSLContext | None = None
        # Count of requests since start; the API allows 10k/day per token
        self.request_count = 0

    @classmethod
    async def create(
        cls,
        token: str,
        secret: str,
        *,
        session: ClientSession | None = None,
        base_url: str = OPENAPI_BASE_URL,
        hass=None,
    ):
        """Async-safe constructor."""
        self = cls(token, secret, base_url=base_url)
        if session is not None:
            self._session = session
            self._owns_session = False
            return self

        # Async-safe SSL context creation
        if hass is not None:
            def _make_ssl():
                return ssl.create_default_context(cafile=certifi.where())
            self._ssl_context = await hass.async_add_executor_job(_make_ssl)
        else:
            self._ssl_context = ssl.create_default_context(cafile=certifi.where())
        await self._init_session()
        return self

    async def _init_session(self):
        """Initialize aiohttp session with SSL context."""
        # Close existing session if already open (important for reloads)
        if self._session and not self._session.closed:
            await self._session.close()

        connector = aiohttp.TCPConnector(ssl=self._ssl_context)
        self._session = ClientSession(connector=connector, timeout=_REQUEST_TIMEOUT)
        self._owns_session = True

    async def close(self):
        """Gracefully close aiohttp session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self) -> Dict[str, str]:
        return sign_request(self._token, self._secret)

    async def _request(self, method: str, path: str, payload: Dict[str, Any] | None = None) -> Result:
        if self._session is None or self._session.closed:
            return None, OperationError(ErrorKind.TRANSPORT_UNAVAILABLE, "OpenAPI session is closed")
        url = f"{self._base}{path}"
        self.request_count += 1
        _LOGGER.debug("OpenAPI %s %s payload=%s", method, url, payload)
        try:
            async with self._session.request(method, url, headers=self._headers(), json=payload) as resp:
                if resp.status < 200 or resp.status >= 300:
                    text = await resp.text()
                    return None, OperationError(
                        ErrorKind.BAD_STATUS_CODE,
                        f"HTTP {resp.status}: {status_message(resp.status)} {text}".strip(),
                        resp.status,
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as ex:
                    return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"invalid JSON: {ex}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
            return None, OperationError(ErrorKind.TRANSPORT_UNAVAILABLE, f"{type(ex).__name__}: {ex}")

        if not isinstance(data, dict):
            return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, f"response is {type(data).__name__}")
        code = data.get("statusCode")
        if code not in OPENAPI_SUCCESS_CODES:
            return None, OperationError(ErrorKind.BAD_STATUS_CODE, status_message(code), code)
        _LOGGER.debug("OpenAPI %s %s ← statusCode=%s body=%s", method, path, code, data.get("body"))
        body = data.get("body")
        return ({} if body is None else body), None

    async def get_devices(self) -> Tuple[List[Dict[str, Any]], Optional[OperationError]]:
        body, err = await self._request("GET", "/devices")
        if err:
            return [], err
        if not isinstance(body, dict) or not isinstance(body.get("deviceList", []), list):
            return [], OperationError(ErrorKind.MALFORMED_PAYLOAD, "Malformed device list")
        return list(body.get("deviceList", [])), None

    async def get_status(self, device_id: str) -> Result:
        """Fetch current status body for a device."""
        body, err = await self._request("GET", f"/devices/{device_id}/status")
        if err:
            return None, err
        if not isinstance(body, dict):
            return None, OperationError(ErrorKind.MALFORMED_PAYLOAD, "Malformed status response")
        return body, None

    async def send_command(
        self,
        device_id: str,
        command: str,
        parameter: Any = "default",
        command_type: str = "command",
    ) -> Result:
        payload = {"command": command, "parameter": parameter, "commandType": command_type}
        return await self._request("POST", f"/devices/{device_id}/commands", payload)

    async def setup_webhook(self, url: str) -> Result:
        return await self._request(
            "POST",
            "/webhook/setupWebhook",
            {"action": "setupWebhook", "url": url, "deviceList": "ALL"},
        )

    async def query_webhook(self) -> Result:
        return await self._request("POST", "/webhook/queryWebhook", {"action": "queryUrl"})

    async def delete_webhook(self, url: str) -> Result:
        return await self._request("POST", "/webhook/deleteWebhook", {"action": "deleteWebhook", "url": url})
