"""Platform wiring: shared transports plus one accessory per configured light."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from .accessory import CharacteristicPublisher, LightAccessory
from .api import SwitchBotCloudClient
from .ble import SwitchBotBleDevice, SwitchBotBleScanner
from .errors import LocalTransportError
from .models import ConnectionMode, DeviceConfig, LightState, PlatformConfig
from .storage import StateStorage
from .webhook import WebhookServer

_LOGGER = logging.getLogger(__name__)


class SwitchBotHub:
    def __init__(
        self,
        platform: PlatformConfig,
        *,
        cloud: SwitchBotCloudClient | None = None,
        scanner: SwitchBotBleScanner | None = None,
        webhook: WebhookServer | None = None,
        storage: StateStorage | None = None,
        ble_device_factory: Callable[..., SwitchBotBleDevice] = SwitchBotBleDevice,
    ):
        self.platform = platform
        self.cloud = cloud
        self.scanner = scanner
        self.webhook = webhook
        self.storage = storage
        self._ble_device_factory = ble_device_factory
        self.accessories: Dict[str, LightAccessory] = {}
        self._stored: Dict[str, LightState] = {}
        self._unsubs: List[Callable[[], None]] = []
        self._webhook_registered = False

    @classmethod
    async def create(cls, platform: PlatformConfig, config_dir: str, *, hass=None, session=None):
        """Build the hub and its shared transports from platform config."""
        cloud = None
        if platform.has_credentials:
            cloud = await SwitchBotCloudClient.create(
                platform.token, platform.secret, session=session, hass=hass
            )
        else:
            _LOGGER.warning("No OpenAPI token/secret configured, only BLE devices will work")
        webhook = None
        if platform.webhook:
            webhook = WebhookServer(platform.webhook_path, port=platform.webhook_port)
        hub = cls(
            platform,
            cloud=cloud,
            scanner=SwitchBotBleScanner(),
            webhook=webhook,
            storage=StateStorage(config_dir, hass),
        )
        await hub.load_state()
        return hub

    async def load_state(self) -> None:
        if self.storage is not None:
            self._stored = await self.storage.read()
            _LOGGER.debug("Loaded stored state for %s devices", len(self._stored))

    def add_accessory(self, config: DeviceConfig, publisher: CharacteristicPublisher) -> LightAccessory:
        ble_device = None
        if config.connection_mode != ConnectionMode.REMOTE and config.ble_command_header:
            ble_device = self._ble_device_factory(
                config.ble_mac, config.ble_command_header, name=config.name
            )
        accessory = LightAccessory(
            config,
            publisher,
            cloud=self.cloud,
            ble_device=ble_device,
            scanner=self.scanner,
            initial_state=self._stored.get(config.device_id),
        )
        self.accessories[config.device_id] = accessory

        if config.webhook and self.webhook is not None:
            self._unsubs.append(self.webhook.register(config.webhook_key, accessory.handle_webhook))
        if config.ble_listen and self.scanner is not None:
            self._unsubs.append(self.scanner.register(config.ble_mac, accessory.handle_ble_payload))
        _LOGGER.debug(
            "%s: added %s (%s) connection=%s webhook=%s ble=%s",
            config.name,
            config.device_type,
            config.device_id,
            config.connection_mode.value,
            config.webhook,
            config.ble_listen,
        )
        return accessory

    async def start(self) -> None:
        await asyncio.gather(*(acc.start() for acc in self.accessories.values()))

        if self.webhook is not None and any(a.config.webhook for a in self.accessories.values()):
            try:
                await self.webhook.start()
            except OSError as ex:
                _LOGGER.error("Webhook receiver failed to start: %s", ex)
            else:
                await self._register_webhook_url()

        if self.scanner is not None and any(a.config.ble_listen for a in self.accessories.values()):
            try:
                await self.scanner.start()
            except LocalTransportError as ex:
                _LOGGER.error("BLE scanning unavailable: %s", ex)

    async def _register_webhook_url(self) -> None:
        url = self.platform.webhook_url
        if not url or self.cloud is None:
            return
        _body, err = await self.cloud.setup_webhook(url)
        if err:
            _LOGGER.error("Failed to register webhook URL %s: %s", url, err)
            return
        self._webhook_registered = True
        _LOGGER.info("Registered webhook URL %s", url)

    async def stop(self) -> None:
        for unsub in self._unsubs:
            unsub()
        self._unsubs.clear()
        await asyncio.gather(*(acc.stop() for acc in self.accessories.values()))

        if self.webhook is not None:
            if self._webhook_registered and self.cloud is not None:
                _body, err = await self.cloud.delete_webhook(self.platform.webhook_url)
                if err:
                    _LOGGER.warning("Failed to delete webhook URL: %s", err)
                self._webhook_registered = False
            await self.webhook.stop()
        if self.scanner is not None:
            await self.scanner.stop()
        if self.storage is not None:
            await self.storage.write({dev_id: acc.cached.copy() for dev_id, acc in self.accessories.items()})
        if self.cloud is not None:
            await self.cloud.close()

    def get(self, device_id: str) -> Optional[LightAccessory]:
        return self.accessories.get(device_id)
