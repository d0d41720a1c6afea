"""Diagnostics support for QuestLog integration.

The diagnostics JSON is the full snapshot, identical to what export_state
returns, so it can be pasted straight into import_state during recovery.
"""

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import QuestLogCoordinator


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: QuestLogCoordinator = hass.data[const.DOMAIN][entry.entry_id][
        const.COORDINATOR
    ]
    return coordinator.export_state()
