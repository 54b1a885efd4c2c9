"""Per-device reconciliation core for a SwitchBot light.

``LightAccessory`` owns the canonical state, the cached-published diff
baseline and the single cycle lock shared by refreshes, pushes and
asynchronous ingestion. Host writes land optimistically on the canonical
state and are dispatched by a ``Debouncer``; every outbound operation
goes through ``RetryController`` so local failures can escalate to the
cloud.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

from .const import (
    BLE_BACKOFF_TIME,
    BLE_SCAN_TIMEOUT,
    BRIGHTNESS_MAX,
    BRIGHTNESS_MIN,
    CHAR_COLOR_TEMPERATURE,
    CHAR_FIRMWARE_REVISION,
    CHAR_HUE,
    CHAR_ON,
    CHAR_SATURATION,
    COLOR_TEMP_MIRED_MAX,
    COLOR_TEMP_MIRED_MIN,
    HUE_MAX,
    POST_PUSH_REFRESH_DELAY,
    SATURATION_MAX,
)
from .conversions import clamp, hs_to_rgb, mired_to_hs, mired_to_kelvin_clamped, parse_rgb
from .coalescer import Debouncer
from .errors import ErrorKind, LocalTransportError, MalformedPayloadError, OperationError
from .ingestion import PARSERS, apply_update
from .models import (
    CHARACTERISTICS,
    BlePayload,
    Command,
    CommandBatch,
    CommandKind,
    DeviceConfig,
    LightState,
    StatusSource,
    StatusUpdate,
)
from .scheduler import OneShotRefresh, RefreshScheduler
from .transport import RetryController

_LOGGER = logging.getLogger(__name__)

# Failures that mean "no transport can reach the device"
_UNREACHABLE = {
    ErrorKind.NO_CREDENTIALS,
    ErrorKind.CLOUD_DISABLED,
    ErrorKind.TRANSPORT_UNAVAILABLE,
}


class CharacteristicPublisher(Protocol):
    """Host side of the accessory. Values are plain state values or an OperationError."""

    def update_characteristic(self, name: str, value: Any) -> None:
        ...


def build_command_batch(desired: LightState, cached: LightState, config: DeviceConfig) -> CommandBatch:
    """Commands that move the device from ``cached`` to ``desired``.

    Order is power, brightness, color temperature, color. Nothing after
    the power command is sent when the light ends up off.
    """
    batch = CommandBatch()
    if desired.power != cached.power:
        batch.commands.append(
            Command(
                CommandKind.POWER,
                "turnOn" if desired.power else "turnOff",
                fields=(("power", desired.power),),
            )
        )
    if not desired.power:
        return batch

    if (
        config.supports_brightness
        and desired.brightness is not None
        and desired.brightness != cached.brightness
    ):
        batch.commands.append(
            Command(
                CommandKind.BRIGHTNESS,
                "setBrightness",
                max(1, int(desired.brightness)),
                fields=(("brightness", desired.brightness),),
            )
        )

    if (
        config.supports_color_temp
        and desired.color_temperature is not None
        and desired.color_temperature != cached.color_temperature
    ):
        low, high = config.color_temp_kelvin_range
        batch.commands.append(
            Command(
                CommandKind.COLOR_TEMPERATURE,
                "setColorTemperature",
                mired_to_kelvin_clamped(desired.color_temperature, low, high),
                fields=(("color_temperature", desired.color_temperature),),
            )
        )

    if config.supports_color and (
        desired.hue != cached.hue or desired.saturation != cached.saturation
    ):
        red, green, blue = hs_to_rgb(desired.hue or 0, desired.saturation or 0)
        batch.commands.append(
            Command(
                CommandKind.COLOR,
                "setColor",
                f"{red}:{green}:{blue}",
                fields=(("hue", desired.hue), ("saturation", desired.saturation)),
            )
        )
    return batch


class LightAccessory:
    def __init__(
        self,
        config: DeviceConfig,
        publisher: CharacteristicPublisher,
        *,
        cloud=None,
        ble_device=None,
        scanner=None,
        initial_state: LightState | None = None,
        backoff: float = BLE_BACKOFF_TIME,
        post_push_delay: float = POST_PUSH_REFRESH_DELAY,
        ble_timeout: float = BLE_SCAN_TIMEOUT,
    ):
        self.config = config
        self._publisher = publisher
        self._cloud = cloud
        self._ble_device = ble_device
        self._scanner = scanner
        self._ble_timeout = ble_timeout

        self.state = initial_state.copy() if initial_state else LightState.defaults(config)
        self.cached = self.state.copy()
        self._faulted = False
        # Fields written by the host that no dispatch has picked up yet
        self._dirty: Set[str] = set()

        self._cycle_lock = asyncio.Lock()
        self._retry = RetryController(config, backoff=backoff)
        self._debouncer = Debouncer(config.push_rate, self._push_changes, name=config.name)
        self._scheduler = RefreshScheduler(
            config.refresh_rate, self.refresh, lambda: self.update_in_progress, name=config.name
        )
        self._post_push = OneShotRefresh(
            post_push_delay, self.refresh, lambda: self.update_in_progress, name=config.name
        )

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def update_in_progress(self) -> bool:
        return self._debouncer.busy or self._cycle_lock.locked()

    @property
    def available(self) -> bool:
        return not self._faulted

    @property
    def adaptive_lighting_shift(self) -> int:
        return self.config.adaptive_lighting_shift

    # ---- lifecycle ----

    async def start(self) -> None:
        self.publish(force=True)
        await self.refresh()
        self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()
        await self._post_push.cancel()
        await self._debouncer.cancel()

    async def wait_idle(self) -> None:
        """Wait for any pending dispatch to finish."""
        await self._debouncer.wait_idle()

    # ---- publishing ----

    def publish(self, force: bool = False) -> List[str]:
        """Emit every characteristic whose canonical value differs from the cache.

        Fields with an undispatched host write are left out of the cache so
        the next dispatch still sees them as changed.
        """
        force = force or self._faulted
        emitted: List[str] = []
        for field_name, char in CHARACTERISTICS:
            value = getattr(self.state, field_name)
            if value is None:
                continue
            if field_name in self._dirty:
                if force:
                    self._publisher.update_characteristic(char, value)
                    emitted.append(char)
                continue
            if not force and value == getattr(self.cached, field_name):
                continue
            self._publisher.update_characteristic(char, value)
            setattr(self.cached, field_name, value)
            emitted.append(char)
        self._faulted = False
        if emitted:
            _LOGGER.debug("%s: published %s", self.name, emitted)
        else:
            _LOGGER.debug("%s: no changes to publish", self.name)
        return emitted

    def publish_error(self, err: OperationError) -> None:
        """Mark every light characteristic with the error indicator."""
        self._faulted = True
        for field_name, char in CHARACTERISTICS:
            if char == CHAR_FIRMWARE_REVISION or getattr(self.state, field_name) is None:
                continue
            self._publisher.update_characteristic(char, err)

    def _handle_failure(self, operation: str, err: OperationError) -> None:
        if self.config.offline and err.kind in _UNREACHABLE:
            _LOGGER.warning("%s: device is offline, %s skipped: %s", self.name, operation, err.message)
            self.state.power = False
            self.cached.power = False
            self._publisher.update_characteristic(CHAR_ON, False)
            return
        if err.kind == ErrorKind.CLOUD_DISABLED:
            _LOGGER.warning("%s: %s skipped, %s", self.name, operation, err.message)
            return
        _LOGGER.error("%s: failed %s: %s", self.name, operation, err)
        self.publish_error(err)

    # ---- ingestion ----

    async def refresh(self) -> Optional[OperationError]:
        """Pull status through the selected transport and publish the delta."""
        if self._debouncer.pending:
            await self._debouncer.wait_idle()
        async with self._cycle_lock:
            try:
                update, err, transport = await self._retry.run(
                    "refresh", self._local_status, self._remote_status
                )
            except asyncio.CancelledError:
                raise
            except Exception as ex:
                _LOGGER.exception("%s: unexpected error during refresh", self.name)
                update, transport = None, None
                err = OperationError(ErrorKind.TRANSPORT_UNAVAILABLE, f"{type(ex).__name__}: {ex}")
            if err:
                self._handle_failure(
                    f"refresh with {transport.value} connection" if transport else "refresh", err
                )
                return err
            self._merge(update)
            return None

    def _merge(self, update: StatusUpdate) -> None:
        if self._dirty:
            _LOGGER.debug(
                "%s: keeping pending writes to %s over %s status",
                self.name,
                sorted(self._dirty),
                update.source.value,
            )
            update = update.without(self._dirty)
        apply_update(self.state, update, self.config)
        self.publish()

    async def _local_status(self) -> StatusUpdate:
        if self._scanner is None:
            raise LocalTransportError("BLE scanning is not available")
        payload = await self._scanner.wait_for_advertisement(self.config.ble_mac, self._ble_timeout)
        if payload.model not in self.config.ble_models:
            raise MalformedPayloadError(
                f"advertised model {payload.model!r} does not match {self.config.device_type}"
            )
        update, err = PARSERS[StatusSource.BLE](payload)
        if err:
            raise MalformedPayloadError(err.message)
        return update

    async def _remote_status(self):
        if self._cloud is None:
            return None, OperationError(ErrorKind.NO_CREDENTIALS, "OpenAPI client not configured")
        body, err = await self._cloud.get_status(self.config.device_id)
        if err:
            return None, err
        return PARSERS[StatusSource.OPENAPI](body)

    async def handle_webhook(self, context: Dict[str, Any]) -> Optional[OperationError]:
        _LOGGER.debug("%s: webhook context %s", self.name, context)
        return await self._ingest(StatusSource.WEBHOOK, context)

    async def handle_ble_payload(self, payload: BlePayload) -> Optional[OperationError]:
        if payload.model not in self.config.ble_models:
            _LOGGER.debug(
                "%s: ignoring advertisement from model %s (%s)", self.name, payload.model, payload.model_name
            )
            return None
        return await self._ingest(StatusSource.BLE, payload)

    async def _ingest(self, source: StatusSource, payload: Any) -> Optional[OperationError]:
        # A pending user write must reach the device before pushed state can overwrite it
        if self._debouncer.pending:
            await self._debouncer.wait_idle()
        async with self._cycle_lock:
            update, err = PARSERS[source](payload)
            if err:
                _LOGGER.error("%s: failed to parse %s status: %s", self.name, source.value, err)
                return err
            self._merge(update)
            return None

    # ---- host writes ----

    def set_on(self, value: bool) -> None:
        value = bool(value)
        if value != self.state.power:
            _LOGGER.info("%s: set On: %s", self.name, value)
        self.state.power = value
        self._dirty.add("power")
        self._debouncer.schedule()

    def set_brightness(self, value: float) -> None:
        if not self.config.supports_brightness:
            return
        value = int(clamp(round(value), BRIGHTNESS_MIN, BRIGHTNESS_MAX))
        if value != self.state.brightness:
            _LOGGER.info("%s: set Brightness: %s", self.name, value)
        self.state.brightness = value
        self._dirty.add("brightness")
        self._debouncer.schedule()

    def set_color_temperature(self, mired: float) -> None:
        if not self.config.supports_color_temp:
            return
        mired = int(clamp(round(mired), COLOR_TEMP_MIRED_MIN, COLOR_TEMP_MIRED_MAX))
        if mired != self.state.color_temperature:
            _LOGGER.info("%s: set ColorTemperature: %s", self.name, mired)
        self.state.color_temperature = mired
        self._dirty.add("color_temperature")
        if self.config.adaptive_lighting and self.config.supports_color:
            hue, saturation = mired_to_hs(mired)
            self._shadow(CHAR_HUE, "hue", hue)
            self._shadow(CHAR_SATURATION, "saturation", saturation)
        self._debouncer.schedule()

    def set_hue(self, hue: float) -> None:
        self.set_color(hue, self.state.saturation or 0)

    def set_saturation(self, saturation: float) -> None:
        self.set_color(self.state.hue or 0, saturation)

    def set_color(self, hue: float, saturation: float) -> None:
        if not self.config.supports_color:
            return
        hue = int(round(hue)) % HUE_MAX
        saturation = int(clamp(round(saturation), 0, SATURATION_MAX))
        if (hue, saturation) != (self.state.hue, self.state.saturation):
            _LOGGER.info("%s: set Hue/Saturation: %s/%s", self.name, hue, saturation)
        self.state.hue = hue
        self.state.saturation = saturation
        self._dirty.update(("hue", "saturation"))
        if self.config.supports_color_temp:
            self._shadow(CHAR_COLOR_TEMPERATURE, "color_temperature", COLOR_TEMP_MIRED_MIN)
        self._debouncer.schedule()

    def _shadow(self, char: str, field_name: str, value: int) -> None:
        """Publish a derived value that is never sent to the device."""
        setattr(self.state, field_name, value)
        setattr(self.cached, field_name, value)
        self._dirty.add(field_name)
        self._publisher.update_characteristic(char, value)

    # ---- dispatch ----

    async def _push_changes(self) -> None:
        async with self._cycle_lock:
            try:
                await self._dispatch()
            finally:
                self._post_push.arm()

    async def _dispatch(self) -> None:
        desired = self.state.copy()
        self._dirty.clear()
        batch = build_command_batch(desired, self.cached, self.config)
        if not batch:
            _LOGGER.debug("%s: no changes to push", self.name)
            return
        _LOGGER.debug("%s: pushing %s", self.name, batch.names)

        done: List[Command] = []

        async def _local() -> None:
            for command in batch.commands[len(done):]:
                await self._send_ble(command, desired)
                done.append(command)

        async def _remote():
            if self._cloud is None:
                return None, OperationError(ErrorKind.NO_CREDENTIALS, "OpenAPI client not configured")
            for command in batch.commands[len(done):]:
                _body, err = await self._cloud.send_command(
                    self.config.device_id, command.command, command.parameter, command.command_type
                )
                if err:
                    return None, err
                done.append(command)
            return None, None

        try:
            _result, err, transport = await self._retry.run("push", _local, _remote)
        except asyncio.CancelledError:
            raise
        except Exception as ex:
            _LOGGER.exception("%s: unexpected error during push", self.name)
            err, transport = OperationError(ErrorKind.TRANSPORT_UNAVAILABLE, f"{type(ex).__name__}: {ex}"), None

        for command in done:
            for field_name, value in command.fields:
                setattr(self.cached, field_name, value)

        if err:
            self._handle_failure(
                f"push with {transport.value} connection" if transport else "push", err
            )
            return
        _LOGGER.debug("%s: pushed %s via %s", self.name, batch.names, transport.value)
        self.publish()

    async def _send_ble(self, command: Command, desired: LightState) -> None:
        device = self._ble_device
        if device is None:
            raise LocalTransportError("BLE device handle is not available")
        level = max(1, desired.brightness) if desired.brightness is not None else BRIGHTNESS_MAX
        senders: Dict[CommandKind, Callable[[], Awaitable[Any]]] = {
            CommandKind.POWER: lambda: device.turn_on() if command.command == "turnOn" else device.turn_off(),
            CommandKind.BRIGHTNESS: lambda: device.set_brightness(command.parameter),
            CommandKind.COLOR_TEMPERATURE: lambda: device.set_color_temperature(command.parameter, level),
            CommandKind.COLOR: lambda: device.set_rgb(*(parse_rgb(command.parameter) or (0, 0, 0)), level),
        }
        await senders[command.kind]()
