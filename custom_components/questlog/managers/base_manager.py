"""Base manager class for QuestLog managers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.helpers.dispatcher import async_dispatcher_send

from .. import const
from ..helpers import get_event_signal

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import QuestLogCoordinator


class BaseManager:
    """Base class for QuestLog managers with scoped event support.

    Managers never mutate the coordinator's snapshot directly: they open
    coordinator.async_transaction() and apply reducer actions to the draft.
    """

    def __init__(self, hass: HomeAssistant, coordinator: QuestLogCoordinator) -> None:
        """Initialize manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator managing this integration instance
        """
        self.hass = hass
        self.coordinator = coordinator
        self.entry_id = coordinator.config_entry.entry_id

    def emit(self, suffix: str, **payload: Any) -> None:
        """Emit instance-scoped event.

        Args:
            suffix: Signal suffix constant (e.g., const.SIGNAL_SUFFIX_DAY_ROLLED_OVER)
            **payload: Event data dict passed to listeners
        """
        signal = get_event_signal(self.entry_id, suffix)
        const.LOGGER.debug(
            "DEBUG: Emitting event '%s' for instance %s with payload keys: %s",
            suffix,
            self.entry_id,
            list(payload.keys()),
        )
        # Pass payload as single dict argument (dispatcher only supports *args)
        async_dispatcher_send(self.hass, signal, payload)
