"""Error types shared by the transports and the reconciliation engine."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    TRANSPORT_UNAVAILABLE = "transport_unavailable"
    CLOUD_DISABLED = "cloud_disabled"
    NO_CREDENTIALS = "no_credentials"
    BAD_STATUS_CODE = "bad_status_code"
    MALFORMED_PAYLOAD = "malformed_payload"


@dataclass(frozen=True)
class OperationError:
    """Result-side error returned from boundary calls as ``(result, err)``."""

    kind: ErrorKind
    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.kind.value} ({self.status_code}): {self.message}"
        return f"{self.kind.value}: {self.message}"


class SwitchBotError(Exception):
    """Raised by transport wrappers; carries the matching OperationError."""

    kind = ErrorKind.TRANSPORT_UNAVAILABLE

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

    @property
    def error(self) -> OperationError:
        return OperationError(self.kind, str(self), self.status_code)


class LocalTransportError(SwitchBotError):
    """The BLE link could not complete the operation."""


class DeviceNotFoundError(LocalTransportError):
    """No advertisement from the device within the scan window."""


class CommandFailedError(LocalTransportError):
    """The device answered a command frame with a failure code."""


class MalformedPayloadError(SwitchBotError):
    kind = ErrorKind.MALFORMED_PAYLOAD
