# File: __init__.py
"""Initialization file for the QuestLog integration.

Handles setting up the integration, including loading the stored snapshot,
preparing the coordinator (the state container) and registering services.

Key Features:
- Config entry setup, unload and removal support.
- Heartbeat-driven day/week rollover.
- Storage management for persistent data handling.
"""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import QuestLogCoordinator
from .services import async_setup_services, async_unload_services
from .store import QuestLogStore


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for QuestLog entry: %s", entry.entry_id)

    store = QuestLogStore(hass, const.STORAGE_KEY)
    coordinator = QuestLogCoordinator(hass, entry, store)

    # Load and migrate, then run the startup heartbeat through the first refresh
    await coordinator.async_initialize()
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(const.DOMAIN, {})[entry.entry_id] = {
        const.COORDINATOR: coordinator,
        const.STORE: store,
    }

    async_setup_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, const.PLATFORMS)

    const.LOGGER.info("INFO: QuestLog setup complete for entry: %s", entry.entry_id)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading QuestLog entry: %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, const.PLATFORMS)

    if unload_ok:
        hass.data[const.DOMAIN].pop(entry.entry_id)
        await async_unload_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing QuestLog entry: %s", entry.entry_id)

    # Entry data is gone after unload, so wipe through a fresh store handle
    await QuestLogStore(hass, const.STORAGE_KEY).async_wipe()

    const.LOGGER.info("INFO: QuestLog entry data cleared: %s", entry.entry_id)
