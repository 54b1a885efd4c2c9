"""Transport selection and the local-retry / remote-fallback controller."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from .const import BLE_BACKOFF_TIME
from .errors import ErrorKind, OperationError, SwitchBotError
from .models import ConnectionMode, DeviceConfig, Transport

_LOGGER = logging.getLogger(__name__)

LocalCall = Callable[[], Awaitable[Any]]
RemoteCall = Callable[[], Awaitable[Tuple[Any, Optional[OperationError]]]]


class TransportSelector:
    """Decides which transport handles an operation for one device."""

    def __init__(self, config: DeviceConfig):
        self._config = config

    @property
    def remote_usable(self) -> bool:
        return self._config.enable_cloud_service and self._config.has_credentials

    def select(self) -> Tuple[Optional[Transport], Optional[OperationError]]:
        cfg = self._config
        mode = cfg.connection_mode
        if mode == ConnectionMode.REMOTE and not cfg.enable_cloud_service:
            return None, OperationError(
                ErrorKind.CLOUD_DISABLED,
                f"enableCloudService is {cfg.enable_cloud_service} for an OpenAPI connection",
            )
        if mode in (ConnectionMode.LOCAL, ConnectionMode.DUAL):
            return Transport.LOCAL, None
        if not cfg.has_credentials:
            return None, OperationError(ErrorKind.NO_CREDENTIALS, "OpenAPI token/secret not configured")
        return Transport.REMOTE, None

    def fallback_for(self, transport: Transport) -> Optional[Transport]:
        """Alternate transport after ``transport`` failed, if any."""
        if (
            transport == Transport.LOCAL
            and self._config.connection_mode == ConnectionMode.DUAL
            and self.remote_usable
        ):
            return Transport.REMOTE
        return None


class RetryController:
    """Bounded local retries with one escalation to the remote transport."""

    def __init__(
        self,
        config: DeviceConfig,
        selector: TransportSelector | None = None,
        *,
        backoff: float = BLE_BACKOFF_TIME,
    ):
        self._config = config
        self._selector = selector or TransportSelector(config)
        self._backoff = backoff

    @property
    def selector(self) -> TransportSelector:
        return self._selector

    async def run(
        self,
        operation: str,
        local_call: LocalCall,
        remote_call: RemoteCall,
    ) -> Tuple[Any, Optional[OperationError], Optional[Transport]]:
        """Run ``operation``; returns (result, err, transport that produced it)."""
        transport, err = self._selector.select()
        if err:
            return None, err, None

        if transport == Transport.REMOTE:
            result, err = await self._remote(operation, remote_call)
            return result, err, Transport.REMOTE

        result, err = await self._local(operation, local_call)
        if err is None:
            return result, None, Transport.LOCAL

        fallback = self._selector.fallback_for(Transport.LOCAL)
        if fallback is None:
            return None, err, Transport.LOCAL
        _LOGGER.warning(
            "%s: using %s connection to %s after BLE failure: %s",
            self._config.name,
            fallback.value,
            operation,
            err.message,
        )
        result, err = await self._remote(operation, remote_call)
        return result, err, fallback

    async def _local(self, operation: str, call: LocalCall) -> Tuple[Any, Optional[OperationError]]:
        attempts = max(1, int(self._config.max_retries))
        last: Optional[OperationError] = None
        for attempt in range(1, attempts + 1):
            try:
                return await call(), None
            except SwitchBotError as ex:
                last = ex.error
            except asyncio.CancelledError:
                raise
            except Exception as ex:
                _LOGGER.exception("%s: unexpected BLE error during %s", self._config.name, operation)
                last = OperationError(ErrorKind.TRANSPORT_UNAVAILABLE, f"{type(ex).__name__}: {ex}")
            if attempt < attempts:
                _LOGGER.debug(
                    "%s: BLE %s failed (%s/%s), retrying: %s",
                    self._config.name,
                    operation,
                    attempt,
                    attempts,
                    last.message,
                )
                if self._backoff:
                    await asyncio.sleep(self._backoff)
        _LOGGER.error(
            "%s: BLE %s failed after %s attempts: %s",
            self._config.name,
            operation,
            attempts,
            last.message if last else "unknown error",
        )
        return None, last

    async def _remote(self, operation: str, call: RemoteCall) -> Tuple[Any, Optional[OperationError]]:
        try:
            result, err = await call()
        except asyncio.CancelledError:
            raise
        except Exception as ex:
            _LOGGER.exception("%s: unexpected OpenAPI error during %s", self._config.name, operation)
            return None, OperationError(ErrorKind.TRANSPORT_UNAVAILABLE, f"{type(ex).__name__}: {ex}")
        if err:
            _LOGGER.error("%s: OpenAPI %s failed: %s", self._config.name, operation, err)
        return result, err
