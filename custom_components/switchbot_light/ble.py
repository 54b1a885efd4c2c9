"""SwitchBot BLE: advertisement scanning and direct-connect control.

Scanning feeds two consumers: the per-MAC dispatch table used for
broadcast pushes, and one-shot waits used by a local status refresh.
Direct control opens a short-lived connection per command frame.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from bleak import BleakScanner
from bleak.exc import BleakError
from bleak_retry_connector import (
    BleakClientWithServiceCache,
    BleakNotFoundError,
    establish_connection,
)

from .const import (
    BLE_SCAN_TIMEOUT,
    SWITCHBOT_MANUFACTURER_ID,
    SWITCHBOT_NOTIFY_UUID,
    SWITCHBOT_SERVICE_DATA_UUIDS,
    SWITCHBOT_WRITE_UUID,
)
from .errors import CommandFailedError, DeviceNotFoundError, LocalTransportError
from .models import BlePayload
from .quirks import BLE_MODEL_NAMES

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice
    from bleak.backends.scanner import AdvertisementData

_LOGGER = logging.getLogger(__name__)

COMMAND_TIMEOUT = 5.0
RESULT_OK = 0x01

BleHandler = Callable[[BlePayload], Awaitable[None]]

# Lights whose advertisement carries a color temperature
_CT_MODELS = {"q", "n"}


def normalize_mac(address: str) -> str:
    raw = "".join(ch for ch in str(address).upper() if ch.isalnum())
    if len(raw) != 12:
        return str(address).upper()
    return ":".join(raw[i:i + 2] for i in range(0, 12, 2))


def parse_advertisement(
    address: str,
    manufacturer_data: Mapping[int, bytes],
    service_data: Mapping[str, bytes],
    rssi: int | None = None,
) -> BlePayload | None:
    """Decode a SwitchBot light advertisement; None for anything else.

    Service data byte 0 holds the model char. Manufacturer data (company
    2409) holds MAC[0:6], sequence[6], on-bit|brightness[7] and, for
    ceiling lights, Kelvin[8:10] big-endian with the on-bit in byte 10.
    """
    raw_service = None
    for uuid in SWITCHBOT_SERVICE_DATA_UUIDS:
        if uuid in service_data:
            raw_service = service_data[uuid]
            break
    if not raw_service:
        return None

    model = chr(raw_service[0] & 0x7F)
    model_name = BLE_MODEL_NAMES.get(model)
    if model_name is None:
        return None

    payload = BlePayload(
        address=normalize_mac(address),
        model=model,
        model_name=model_name,
        rssi=rssi,
    )
    mfr = manufacturer_data.get(SWITCHBOT_MANUFACTURER_ID)
    if not mfr or len(mfr) < 8:
        return payload

    payload.brightness = mfr[7] & 0x7F
    if model in _CT_MODELS:
        if len(mfr) >= 11:
            payload.color_temperature = int.from_bytes(mfr[8:10], "big")
            payload.state = bool(mfr[10] & 0x80)
    else:
        payload.state = bool(mfr[7] & 0x80)
    return payload


class SwitchBotBleScanner:
    """Shared BLE scanner dispatching parsed advertisements by MAC."""

    def __init__(
        self,
        scanner_factory: Callable[..., Any] = BleakScanner,
        *,
        listener: Callable[[BlePayload], None] | None = None,
    ):
        self._scanner_factory = scanner_factory
        # Sees every parsed advertisement, registered or not
        self._listener = listener
        self._scanner = None
        self._handlers: dict[str, BleHandler] = {}
        self._waiters: dict[str, list[asyncio.Future]] = {}
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()
        # start() keeps scanning on; one-shot waiters only hold it while counted
        self._listening = False
        self._on_demand = 0

    @property
    def scanning(self) -> bool:
        return self._scanner is not None

    def register(self, mac: str, handler: BleHandler) -> Callable[[], None]:
        """Register a handler for one device's advertisements.

        Returns:
            A remove function.
        """
        key = normalize_mac(mac)
        self._handlers[key] = handler

        def _remove() -> None:
            if self._handlers.get(key) is handler:
                self._handlers.pop(key, None)

        return _remove

    async def start(self) -> None:
        async with self._lock:
            await self._start_scanning()
            self._listening = True

    async def stop(self) -> None:
        async with self._lock:
            self._listening = False
            await self._stop_scanning()
        for task in list(self._tasks):
            task.cancel()

    async def _start_scanning(self) -> None:
        if self._scanner is not None:
            return
        scanner = self._scanner_factory(detection_callback=self._on_detection)
        try:
            await scanner.start()
        except BleakError as exc:
            raise LocalTransportError(f"BLE scanner failed to start: {exc}") from exc
        self._scanner = scanner
        _LOGGER.debug("BLE scanner started")

    async def _stop_scanning(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            with contextlib.suppress(BleakError):
                await scanner.stop()
            _LOGGER.debug("BLE scanner stopped")

    def _on_detection(self, device: "BLEDevice", advertisement: "AdvertisementData") -> None:
        payload = parse_advertisement(
            device.address,
            advertisement.manufacturer_data,
            advertisement.service_data,
            getattr(advertisement, "rssi", None),
        )
        if payload is None:
            return
        self.dispatch(payload)

    def dispatch(self, payload: BlePayload) -> None:
        """Deliver a parsed advertisement to waiters and the registered handler."""
        if self._listener is not None:
            self._listener(payload)
        for fut in self._waiters.pop(payload.address, []):
            if not fut.done():
                fut.set_result(payload)
        handler = self._handlers.get(payload.address)
        if handler is None:
            return
        task = asyncio.create_task(handler(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_for_advertisement(self, mac: str, timeout: float = BLE_SCAN_TIMEOUT) -> BlePayload:
        """Return the next advertisement from ``mac``, scanning if needed."""
        key = normalize_mac(mac)
        fut = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(key, []).append(fut)
        async with self._lock:
            self._on_demand += 1
            try:
                await self._start_scanning()
            except LocalTransportError:
                self._on_demand -= 1
                self._drop_waiter(key, fut)
                raise
        try:
            return await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError as exc:
            raise DeviceNotFoundError(f"no advertisement from {key} within {timeout}s") from exc
        finally:
            self._drop_waiter(key, fut)
            async with self._lock:
                self._on_demand -= 1
                if not self._on_demand and not self._listening:
                    await self._stop_scanning()

    def _drop_waiter(self, key: str, fut: asyncio.Future) -> None:
        waiters = self._waiters.get(key)
        if waiters and fut in waiters:
            waiters.remove(fut)
            if not waiters:
                self._waiters.pop(key, None)


class SwitchBotBleDevice:
    """Direct-connect handle for one light."""

    def __init__(
        self,
        address: str,
        command_header: str,
        *,
        name: str | None = None,
        device_finder: Callable[..., Awaitable[Any]] = BleakScanner.find_device_by_address,
        scan_timeout: float = BLE_SCAN_TIMEOUT,
    ):
        self.address = normalize_mac(address)
        self._header = command_header
        self._name = name or self.address
        self._find_device = device_finder
        self._scan_timeout = scan_timeout
        self._write_lock = asyncio.Lock()

    async def turn_on(self) -> bytes:
        return await self._send_command(f"{self._header}01")

    async def turn_off(self) -> bytes:
        return await self._send_command(f"{self._header}02")

    async def set_brightness(self, brightness: int) -> bytes:
        return await self._send_command(f"{self._header}14{_byte(brightness)}")

    async def set_color_temperature(self, kelvin: int, brightness: int = 100) -> bytes:
        return await self._send_command(
            f"{self._header}17{_byte(brightness)}{max(0, min(0xFFFF, int(kelvin))):04X}"
        )

    async def set_rgb(self, red: int, green: int, blue: int, brightness: int = 100) -> bytes:
        return await self._send_command(
            f"{self._header}16{_byte(brightness)}{_byte(red, 255)}{_byte(green, 255)}{_byte(blue, 255)}"
        )

    async def _send_command(self, key: str) -> bytes:
        async with self._write_lock:
            ble_device = await self._find_device(self.address, timeout=self._scan_timeout)
            if ble_device is None:
                raise DeviceNotFoundError(f"{self._name}: device not found while scanning")

            try:
                client = await establish_connection(
                    client_class=BleakClientWithServiceCache,
                    device=ble_device,
                    name=self._name,
                    max_attempts=1,
                )
            except BleakNotFoundError as exc:
                raise DeviceNotFoundError(f"{self._name}: {exc}") from exc
            except BleakError as exc:
                raise LocalTransportError(f"{self._name}: connection failed: {exc}") from exc

            loop = asyncio.get_running_loop()
            response: asyncio.Future = loop.create_future()

            def _on_notify(_char: Any, data: bytearray) -> None:
                if not response.done():
                    response.set_result(bytes(data))

            try:
                await client.start_notify(SWITCHBOT_NOTIFY_UUID, _on_notify)
                _LOGGER.debug("%s: sending command %s", self._name, key)
                await client.write_gatt_char(SWITCHBOT_WRITE_UUID, bytes.fromhex(key), response=False)
                result = await asyncio.wait_for(response, COMMAND_TIMEOUT)
            except asyncio.TimeoutError as exc:
                raise LocalTransportError(f"{self._name}: no response to {key}") from exc
            except BleakError as exc:
                raise LocalTransportError(f"{self._name}: write failed: {exc}") from exc
            finally:
                with contextlib.suppress(BleakError):
                    await client.disconnect()

        if not result or result[0] != RESULT_OK:
            raise CommandFailedError(f"{self._name}: command {key} rejected: {result.hex()}")
        return result


def _byte(value: int, maximum: int = 100) -> str:
    return f"{max(0, min(maximum, int(value))):02X}"
