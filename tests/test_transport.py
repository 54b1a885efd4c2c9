from unittest.mock import AsyncMock

import pytest

from custom_components.switchbot_light.errors import (
    ErrorKind,
    LocalTransportError,
    OperationError,
)
from custom_components.switchbot_light.models import ConnectionMode, Transport
from custom_components.switchbot_light.transport import RetryController, TransportSelector


@pytest.mark.parametrize(
    "mode, creds, cloud, expected, kind",
    [
        (ConnectionMode.REMOTE, True, True, Transport.REMOTE, None),
        (ConnectionMode.REMOTE, True, False, None, ErrorKind.CLOUD_DISABLED),
        (ConnectionMode.REMOTE, False, True, None, ErrorKind.NO_CREDENTIALS),
        (ConnectionMode.LOCAL, False, False, Transport.LOCAL, None),
        (ConnectionMode.DUAL, True, True, Transport.LOCAL, None),
    ],
)
def test_select(make_config, mode, creds, cloud, expected, kind):
    selector = TransportSelector(
        make_config(connection_mode=mode, has_credentials=creds, enable_cloud_service=cloud)
    )
    transport, err = selector.select()
    assert transport == expected
    assert (err.kind if err else None) == kind


def test_fallback_only_for_dual_with_usable_cloud(make_config):
    dual = TransportSelector(make_config(connection_mode=ConnectionMode.DUAL))
    assert dual.fallback_for(Transport.LOCAL) == Transport.REMOTE
    assert dual.fallback_for(Transport.REMOTE) is None

    no_creds = TransportSelector(make_config(connection_mode=ConnectionMode.DUAL, has_credentials=False))
    assert no_creds.fallback_for(Transport.LOCAL) is None

    local = TransportSelector(make_config(connection_mode=ConnectionMode.LOCAL))
    assert local.fallback_for(Transport.LOCAL) is None


async def test_local_retry_then_success(make_config):
    controller = RetryController(make_config(connection_mode=ConnectionMode.LOCAL), backoff=0)
    local = AsyncMock(side_effect=[LocalTransportError("busy"), "ok"])
    remote = AsyncMock()

    result, err, transport = await controller.run("push", local, remote)

    assert (result, err, transport) == ("ok", None, Transport.LOCAL)
    assert local.await_count == 2
    remote.assert_not_awaited()


async def test_dual_escalates_exactly_once(make_config):
    controller = RetryController(
        make_config(connection_mode=ConnectionMode.DUAL, max_retries=3), backoff=0
    )
    local = AsyncMock(side_effect=LocalTransportError("out of range"))
    remote = AsyncMock(return_value=("status", None))

    result, err, transport = await controller.run("refresh", local, remote)

    assert (result, err, transport) == ("status", None, Transport.REMOTE)
    assert local.await_count == 3
    remote.assert_awaited_once()


async def test_local_only_exhaustion_surfaces_error(make_config):
    controller = RetryController(
        make_config(connection_mode=ConnectionMode.LOCAL, max_retries=2), backoff=0
    )
    local = AsyncMock(side_effect=LocalTransportError("gone"))
    remote = AsyncMock()

    result, err, transport = await controller.run("push", local, remote)

    assert result is None
    assert err.kind == ErrorKind.TRANSPORT_UNAVAILABLE
    assert transport == Transport.LOCAL
    assert local.await_count == 2
    remote.assert_not_awaited()


async def test_unexpected_local_exception_is_converted(make_config):
    controller = RetryController(
        make_config(connection_mode=ConnectionMode.LOCAL, max_retries=1), backoff=0
    )
    local = AsyncMock(side_effect=RuntimeError("boom"))

    _result, err, _transport = await controller.run("push", local, AsyncMock())

    assert err.kind == ErrorKind.TRANSPORT_UNAVAILABLE
    assert "boom" in err.message


async def test_remote_failure_is_not_retried(make_config):
    controller = RetryController(make_config(), backoff=0)
    failure = OperationError(ErrorKind.BAD_STATUS_CODE, "Device is offline", 161)
    remote = AsyncMock(return_value=(None, failure))

    _result, err, transport = await controller.run("push", AsyncMock(), remote)

    assert err is failure
    assert transport == Transport.REMOTE
    remote.assert_awaited_once()


async def test_cloud_disabled_calls_nothing(make_config):
    controller = RetryController(make_config(enable_cloud_service=False), backoff=0)
    local, remote = AsyncMock(), AsyncMock()

    _result, err, transport = await controller.run("refresh", local, remote)

    assert err.kind == ErrorKind.CLOUD_DISABLED
    assert transport is None
    local.assert_not_awaited()
    remote.assert_not_awaited()
