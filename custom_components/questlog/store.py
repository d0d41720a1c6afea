# File: store.py
"""Handles persistent data storage for the QuestLog integration.

Uses Home Assistant's Storage helper as the persistence collaborator:
load() fails soft, save() is best-effort, wipe() removes the file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store

from . import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


class QuestLogStore:
    """Thin wrapper around Home Assistant's Store API for QuestLog snapshots.

    The store holds no state of its own; the coordinator owns the snapshot and
    hands it over on every save.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._store: Store[dict[str, Any]] = Store(hass, const.STORAGE_VERSION, storage_key)

    async def async_load(self) -> dict[str, Any] | None:
        """Load the stored snapshot.

        Returns:
            The raw stored dict, or None when nothing is stored or the file
            cannot be read or decoded.
        """
        try:
            data = await self._store.async_load()
        except (HomeAssistantError, OSError, ValueError) as err:
            const.LOGGER.error(
                "ERROR: Failed to load storage %s: %s. Starting from defaults",
                self._store.path,
                err,
            )
            return None

        if data is None:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            return None
        if not isinstance(data, dict):
            const.LOGGER.error(
                "ERROR: Storage %s holds %s instead of an object. Starting from defaults",
                self._store.path,
                type(data).__name__,
            )
            return None

        const.LOGGER.debug(
            "DEBUG: Loaded existing data from storage: %s",
            {
                "ledger": len(data.get(const.DATA_LEDGER) or []),
                "habits": len(data.get(const.DATA_HABITS) or {}),
                "task_rules": len(data.get(const.DATA_TASK_RULES) or {}),
                "library": len(data.get(const.DATA_LIBRARY) or {}),
                "total_keys": len(data),
            },
        )
        return data

    async def async_save(self, data: dict[str, Any]) -> None:
        """Save a snapshot to storage.

        Raises:
            No exceptions raised - errors are logged but do not stop execution.
        """
        try:
            await self._store.async_save(data)
            const.LOGGER.debug("DEBUG: Data saved successfully to storage")
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
        except TypeError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to non-serializable data: %s",
                err,
            )
        except ValueError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to invalid data format: %s",
                err,
            )

    async def async_wipe(self) -> None:
        """Delete the storage file completely from disk."""
        const.LOGGER.warning("WARNING: Clearing all QuestLog data and removing storage")
        try:
            await self._store.async_remove()
            const.LOGGER.info("INFO: Storage file removed successfully: %s", self._store.path)
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to remove storage file %s: %s. Check file permissions",
                self._store.path,
                err,
            )
