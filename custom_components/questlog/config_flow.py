# File: config_flow.py
"""Config flow for the QuestLog integration.

QuestLog keeps a single personal log per Home Assistant instance. User
settings live in the stored snapshot, not in config entry options.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries

from . import const


class QuestLogConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Single-instance config flow for QuestLog."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Confirm creation of the QuestLog entry."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        if user_input is not None:
            const.LOGGER.info("INFO: Creating QuestLog config entry")
            return self.async_create_entry(title=const.QUESTLOG_TITLE, data={})

        return self.async_show_form(step_id="user", data_schema=vol.Schema({}))
