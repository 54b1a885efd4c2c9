"""Persistent storage for each light's last published state."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict

from .models import LightState

_LOGGER = logging.getLogger(__name__)

STATE_SCHEMA_VERSION = 1
STATE_FILE = "switchbot_light_state.json"


class StateStorage:
    def __init__(self, config_dir: str, hass=None) -> None:
        self._hass = hass
        self._config_dir = config_dir
        self._integration_version = self._load_manifest_version()

    @staticmethod
    def _load_manifest_version() -> str | None:
        manifest_path = Path(__file__).with_name("manifest.json")
        try:
            with manifest_path.open("r", encoding="utf-8") as handle:
                manifest = json.load(handle)
        except (OSError, ValueError):
            return None
        version = manifest.get("version") if isinstance(manifest, dict) else None
        return version if isinstance(version, str) and version else None

    def _path(self) -> str:
        if self._hass is not None:
            return self._hass.config.path(f".storage/{STATE_FILE}")
        return os.path.join(self._config_dir, ".storage", STATE_FILE)

    async def read(self) -> Dict[str, LightState]:
        """Stored state per device id; empty when missing, stale or corrupt."""

        def _read() -> Dict[str, LightState]:
            path = self._path()
            try:
                with open(path, "r", encoding="utf-8") as f_handle:
                    raw = json.load(f_handle)
            except FileNotFoundError:
                return {}
            except (OSError, ValueError) as ex:
                _LOGGER.warning("Ignoring unreadable state file %s: %s", path, ex)
                return {}

            if not isinstance(raw, dict) or raw.get("__schema_version") != STATE_SCHEMA_VERSION:
                _LOGGER.debug("State file %s has an old schema, starting fresh", path)
                return {}

            out: Dict[str, LightState] = {}
            payload = raw.get("devices")
            if isinstance(payload, dict):
                for key, value in payload.items():
                    if not isinstance(value, dict):
                        continue
                    try:
                        out[key] = LightState.from_dict(value)
                    except TypeError:
                        _LOGGER.debug("Skipping malformed stored state for %s", key)
            return out

        if self._hass is not None:
            return await self._hass.async_add_executor_job(_read)
        return _read()

    async def write(self, states: Dict[str, LightState]) -> None:
        def _write() -> None:
            path = self._path()
            payload = {
                "__schema_version": STATE_SCHEMA_VERSION,
                "__integration_version": self._integration_version,
                "devices": {key: value.as_dict() for key, value in states.items()},
            }
            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "w", encoding="utf-8") as f_handle:
                    json.dump(payload, f_handle, ensure_ascii=False)
            except OSError as ex:
                # best-effort persistence
                _LOGGER.warning("Could not write state file %s: %s", path, ex)

        if self._hass is not None:
            await self._hass.async_add_executor_job(_write)
        else:
            _write()
