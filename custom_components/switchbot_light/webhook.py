"""Local HTTP receiver for SwitchBot OpenAPI webhook pushes."""
from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web

from .const import DEFAULT_WEBHOOK_PATH, DEFAULT_WEBHOOK_PORT

_LOGGER = logging.getLogger(__name__)

WebhookHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


def webhook_key(device_mac: Any) -> str:
    """"aa:bb:cc:dd:ee:ff" -> "AABBCCDDEEFF"."""
    return "".join(ch for ch in str(device_mac).upper() if ch.isalnum())


class WebhookServer:
    """Dispatches each push's ``context`` to the handler registered for its deviceMac."""

    def __init__(
        self,
        path: str = DEFAULT_WEBHOOK_PATH,
        *,
        host: str = "0.0.0.0",
        port: int = DEFAULT_WEBHOOK_PORT,
    ):
        self.path = path if path.startswith("/") else f"/{path}"
        self.host = host
        self.port = port
        self._handlers: Dict[str, WebhookHandler] = {}
        self._tasks: set[asyncio.Task] = set()
        self._runner: Optional[web.AppRunner] = None
        self.app = web.Application()
        self.app.router.add_post(self.path, self._handle)

    def register(self, device_id: str, handler: WebhookHandler) -> Callable[[], None]:
        key = webhook_key(device_id)
        self._handlers[key] = handler

        def _remove() -> None:
            if self._handlers.get(key) is handler:
                self._handlers.pop(key, None)

        return _remove

    async def _handle(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except ValueError:
            _LOGGER.error("Received invalid webhook JSON")
            return web.json_response({"message": "Invalid JSON"}, status=HTTPStatus.BAD_REQUEST)

        context = body.get("context") if isinstance(body, dict) else None
        if not isinstance(context, dict):
            _LOGGER.error("Webhook body has no context: %s", body)
            return web.json_response({"message": "Missing context"}, status=HTTPStatus.BAD_REQUEST)

        key = webhook_key(context.get("deviceMac", ""))
        handler = self._handlers.get(key)
        if handler is None:
            _LOGGER.debug("No webhook handler for %s (%s)", key, body.get("eventType"))
            return web.json_response({"status": "ignored"})

        task = asyncio.create_task(handler(context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return web.json_response({"status": "ok"})

    async def start(self) -> None:
        if self._runner is not None:
            return
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        await site.start()
        self._runner = runner
        _LOGGER.info("Webhook receiver listening on %s:%s%s", self.host, self.port, self.path)

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()
        for task in list(self._tasks):
            task.cancel()
