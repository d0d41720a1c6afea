# File: helpers.py
"""Home Assistant-facing helper functions for QuestLog."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError

from . import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .coordinator import QuestLogCoordinator

DATA_KEY_DATA = "data"
DATA_KEY_VERSION = "version"
DATA_KEY_HOME_ASSISTANT = "home_assistant"
DATA_KEY_ENTRY = "entry"


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped dispatcher signal name.

    Format: 'questlog_{entry_id}_{suffix}'

    Example:
        get_event_signal("abc123", "state_changed") → "questlog_abc123_state_changed"
    """
    return f"{const.DOMAIN}_{entry_id}_{suffix}"


def get_coordinator(hass: HomeAssistant) -> QuestLogCoordinator:
    """Return the coordinator of the (single) loaded QuestLog entry.

    Raises:
        HomeAssistantError: If no entry is loaded
    """
    entries = hass.data.get(const.DOMAIN) or {}
    for entry_data in entries.values():
        return entry_data[const.COORDINATOR]
    raise HomeAssistantError(const.MSG_NO_ENTRY_FOUND)


def parse_import_payload(raw: str | dict[str, Any]) -> dict[str, Any]:
    """Parse an import payload into a raw snapshot dict.

    Accepts a JSON string or a dict, in any of three shapes:
    - raw snapshot
    - Home Assistant Store file ({"version": .., "data": {...}})
    - diagnostics download ({"entry": .., "data": {...}})

    Raises:
        HomeAssistantError: Malformed JSON or a non-object payload
    """
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as err:
            raise HomeAssistantError(f"Invalid JSON: {err}") from err
    else:
        parsed = raw

    if not isinstance(parsed, dict):
        raise HomeAssistantError("Import payload must be a JSON object")

    if isinstance(parsed.get(DATA_KEY_DATA), dict) and (
        DATA_KEY_VERSION in parsed
        or DATA_KEY_HOME_ASSISTANT in parsed
        or DATA_KEY_ENTRY in parsed
    ):
        const.LOGGER.info("INFO: Unwrapping exported snapshot envelope")
        return parsed[DATA_KEY_DATA]
    return parsed
