# File: services.py
"""Defines custom services for the QuestLog integration.

These services allow direct actions through scripts or automations: awards,
coin spending, content management (habits, task rules, library items, ad hoc
tasks, settings) and state import/export. Award and content services accept
an optional action_id; repeating a call with the same action_id is applied once.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from . import actions as act, const
from .helpers import get_coordinator
from .managers import AwardManager, AwardResult

# --- Service Schemas ---
ACTION_ID_FIELD = {vol.Optional(const.FIELD_ACTION_ID): cv.string}

TASK_SCHEMA = vol.Schema(
    {vol.Required(const.FIELD_INSTANCE_ID): cv.string, **ACTION_ID_FIELD}
)

HABIT_SCHEMA = vol.Schema({vol.Required(const.FIELD_HABIT_ID): cv.string, **ACTION_ID_FIELD})

LIBRARY_ITEM_SCHEMA = vol.Schema(
    {vol.Required(const.FIELD_ITEM_ID): cv.string, **ACTION_ID_FIELD}
)

CHALLENGE_SCHEMA = vol.Schema(
    {vol.Required(const.FIELD_CHALLENGE_ID): cv.string, **ACTION_ID_FIELD}
)

BOSS_TICK_SCHEMA = vol.Schema({vol.Required(const.FIELD_GOAL_ID): cv.string, **ACTION_ID_FIELD})

UNDO_LAST_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_TYPE): vol.In(sorted(const.UNDOABLE_LEDGER_TYPES)),
        vol.Required(const.FIELD_SUBJECT_ID): cv.string,
        **ACTION_ID_FIELD,
    }
)

SPEND_COINS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_AMOUNT): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Required(const.FIELD_LABEL): cv.string,
        **ACTION_ID_FIELD,
    }
)

ACTION_ID_ONLY_SCHEMA = vol.Schema(ACTION_ID_FIELD)

IMPORT_STATE_SCHEMA = vol.Schema(
    {vol.Required(const.FIELD_STATE): vol.Any(cv.string, dict)}
)

RESET_ALL_DATA_SCHEMA = vol.Schema({})
EXPORT_STATE_SCHEMA = vol.Schema({})

# --- Content Management Schemas ---
# Payload fields use the stored DATA_* keys so call data passes straight
# through to the data builders.
POINTS_FIELD = vol.All(vol.Coerce(int), vol.Range(min=0))
WEEKDAYS_FIELD = vol.All(
    cv.ensure_list, [vol.All(vol.Coerce(int), vol.Range(min=0, max=6))]
)

HABIT_FIELDS = {
    vol.Optional(const.DATA_HABIT_KIND): vol.In(sorted(const.HABIT_KINDS)),
    vol.Optional(const.DATA_HABIT_TARGET_PER_DAY): vol.All(
        vol.Coerce(int), vol.Range(min=1)
    ),
    vol.Optional(const.DATA_HABIT_POINTS_ON_COMPLETE): POINTS_FIELD,
    vol.Optional(const.DATA_HABIT_BY_WEEKDAY): vol.Any(None, WEEKDAYS_FIELD),
    vol.Optional(const.DATA_ENTITY_ACTIVE): cv.boolean,
}

TASK_RULE_FIELDS = {
    vol.Optional(const.DATA_TASK_POINTS): POINTS_FIELD,
    vol.Optional(const.DATA_TASK_RULE_BY_WEEKDAY): vol.Any(None, WEEKDAYS_FIELD),
    vol.Optional(const.DATA_ENTITY_ACTIVE): cv.boolean,
}

LIBRARY_ITEM_FIELDS = {
    vol.Optional(const.DATA_LIBRARY_POINTS): POINTS_FIELD,
    vol.Optional(const.DATA_LIBRARY_COOLDOWN_HOURS): vol.Any(
        None, vol.All(vol.Coerce(float), vol.Range(min=0))
    ),
    vol.Optional(const.DATA_LIBRARY_MAX_PER_DAY): vol.Any(
        None, vol.All(vol.Coerce(int), vol.Range(min=0))
    ),
    vol.Optional(const.DATA_LIBRARY_ALLOWED_WEEKDAYS): vol.Any(None, WEEKDAYS_FIELD),
    vol.Optional(const.DATA_LIBRARY_INCLUDE_IN_CHALLENGES): cv.boolean,
    vol.Optional(const.DATA_LIBRARY_INCLUDE_IN_BOSS): cv.boolean,
    vol.Optional(const.DATA_LIBRARY_PINNED): cv.boolean,
    vol.Optional(const.DATA_ENTITY_ACTIVE): cv.boolean,
}

TASK_FIELDS = {
    vol.Optional(const.DATA_TASK_POINTS): POINTS_FIELD,
    vol.Optional(const.DATA_TASK_INSTANCE_DAY): cv.string,
    vol.Optional(const.DATA_TASK_INSTANCE_DONE): cv.boolean,
}


def _add_schema(fields: dict[Any, Any]) -> vol.Schema:
    return vol.Schema(
        {vol.Required(const.DATA_ENTITY_TITLE): cv.string, **fields, **ACTION_ID_FIELD}
    )


def _edit_schema(id_field: str, fields: dict[Any, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(id_field): cv.string,
            vol.Optional(const.DATA_ENTITY_TITLE): cv.string,
            **fields,
            **ACTION_ID_FIELD,
        }
    )


def _id_schema(id_field: str) -> vol.Schema:
    return vol.Schema({vol.Required(id_field): cv.string, **ACTION_ID_FIELD})


UPDATE_SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Optional(const.DATA_SETTINGS_DAILY_GOAL): vol.Coerce(int),
        vol.Optional(const.DATA_SETTINGS_POINTS_PER_COIN): vol.Coerce(int),
        vol.Optional(const.DATA_SETTINGS_DAILY_CHALLENGES_COUNT): vol.Coerce(int),
        vol.Optional(const.DATA_SETTINGS_CHALLENGE_MULTIPLIER): vol.Coerce(float),
        vol.Optional(const.DATA_SETTINGS_BOSS_TASKS_PER_WEEK): vol.Coerce(int),
        vol.Optional(const.DATA_SETTINGS_BOSS_TIMES_MIN): vol.Coerce(int),
        vol.Optional(const.DATA_SETTINGS_BOSS_TIMES_MAX): vol.Coerce(int),
        **ACTION_ID_FIELD,
    }
)


def _raise_if_refused(service: str, result: AwardResult) -> None:
    if not result.ok:
        const.LOGGER.warning("WARNING: %s refused: %s", service, result.reason)
        raise HomeAssistantError(f"{service} refused: {result.reason}")


def async_setup_services(hass: HomeAssistant) -> None:
    """Register QuestLog services."""

    def award_handler(
        service: str,
        field: str | None,
        operation: Callable[..., Awaitable[AwardResult]],
    ) -> Callable[[ServiceCall], Awaitable[None]]:
        """Build a handler that calls an AwardManager coroutine."""

        async def handle(call: ServiceCall) -> None:
            coordinator = get_coordinator(hass)
            args: list[Any] = [call.data[field]] if field else []
            result = await operation(
                coordinator.award_manager,
                *args,
                action_id=call.data.get(const.FIELD_ACTION_ID),
            )
            _raise_if_refused(service, result)
            const.LOGGER.info(
                "INFO: %s applied (points=%s, coins=%s)", service, result.points, result.coins
            )

        return handle

    award_services: list[tuple[str, str | None, Callable[..., Any], vol.Schema]] = [
        (
            const.SERVICE_AWARD_TASK,
            const.FIELD_INSTANCE_ID,
            AwardManager.async_award_task,
            TASK_SCHEMA,
        ),
        (
            const.SERVICE_UNCOMPLETE_TASK,
            const.FIELD_INSTANCE_ID,
            AwardManager.async_uncomplete_task,
            TASK_SCHEMA,
        ),
        (
            const.SERVICE_AWARD_HABIT,
            const.FIELD_HABIT_ID,
            AwardManager.async_award_habit,
            HABIT_SCHEMA,
        ),
        (
            const.SERVICE_HABIT_INCREMENT,
            const.FIELD_HABIT_ID,
            AwardManager.async_habit_increment,
            HABIT_SCHEMA,
        ),
        (
            const.SERVICE_HABIT_DECREMENT,
            const.FIELD_HABIT_ID,
            AwardManager.async_habit_decrement,
            HABIT_SCHEMA,
        ),
        (
            const.SERVICE_AWARD_LIBRARY_ITEM,
            const.FIELD_ITEM_ID,
            AwardManager.async_award_library_tap,
            LIBRARY_ITEM_SCHEMA,
        ),
        (
            const.SERVICE_AWARD_CHALLENGE,
            const.FIELD_CHALLENGE_ID,
            AwardManager.async_award_challenge,
            CHALLENGE_SCHEMA,
        ),
        (
            const.SERVICE_AWARD_BOSS_TICK,
            const.FIELD_GOAL_ID,
            AwardManager.async_award_boss_tick,
            BOSS_TICK_SCHEMA,
        ),
        (
            const.SERVICE_START_POWER_HOUR,
            None,
            AwardManager.async_start_power_hour,
            ACTION_ID_ONLY_SCHEMA,
        ),
    ]
    for service, field, operation, schema in award_services:
        hass.services.async_register(
            const.DOMAIN, service, award_handler(service, field, operation), schema=schema
        )

    def dispatch_handler(
        service: str,
        action_cls: type[act.Action],
        id_field: str | None,
        payload_key: str | None,
    ) -> Callable[[ServiceCall], Awaitable[None]]:
        """Build a handler that dispatches one content action.

        The call data minus the id and action_id fields becomes the action
        payload; rejected actions raise HomeAssistantError.
        """

        async def handle(call: ServiceCall) -> None:
            coordinator = get_coordinator(hass)
            payload = dict(call.data)
            kwargs: dict[str, Any] = {"action_id": payload.pop(const.FIELD_ACTION_ID, None)}
            if id_field:
                kwargs["id"] = payload.pop(id_field)
            if payload_key:
                kwargs[payload_key] = payload
            if not await coordinator.async_dispatch(action_cls(**kwargs)):
                raise HomeAssistantError(f"{service} refused: invalid data or unknown id")
            const.LOGGER.info("INFO: %s applied", service)

        return handle

    content_services: list[tuple[str, type[act.Action], str | None, str | None, vol.Schema]] = [
        (const.SERVICE_ADD_HABIT, act.HabitAdd, None, "item", _add_schema(HABIT_FIELDS)),
        (
            const.SERVICE_EDIT_HABIT,
            act.HabitEdit,
            const.FIELD_HABIT_ID,
            "patch",
            _edit_schema(const.FIELD_HABIT_ID, HABIT_FIELDS),
        ),
        (
            const.SERVICE_DELETE_HABIT,
            act.HabitDelete,
            const.FIELD_HABIT_ID,
            None,
            _id_schema(const.FIELD_HABIT_ID),
        ),
        (
            const.SERVICE_TOGGLE_HABIT,
            act.HabitToggleActive,
            const.FIELD_HABIT_ID,
            None,
            _id_schema(const.FIELD_HABIT_ID),
        ),
        (
            const.SERVICE_ADD_TASK_RULE,
            act.TaskRuleAdd,
            None,
            "rule",
            _add_schema(TASK_RULE_FIELDS),
        ),
        (
            const.SERVICE_EDIT_TASK_RULE,
            act.TaskRuleEdit,
            const.FIELD_RULE_ID,
            "patch",
            _edit_schema(const.FIELD_RULE_ID, TASK_RULE_FIELDS),
        ),
        (
            const.SERVICE_DELETE_TASK_RULE,
            act.TaskRuleDelete,
            const.FIELD_RULE_ID,
            None,
            _id_schema(const.FIELD_RULE_ID),
        ),
        (
            const.SERVICE_TOGGLE_TASK_RULE,
            act.TaskRuleToggleActive,
            const.FIELD_RULE_ID,
            None,
            _id_schema(const.FIELD_RULE_ID),
        ),
        (
            const.SERVICE_ADD_LIBRARY_ITEM,
            act.LibraryItemAdd,
            None,
            "item",
            _add_schema(LIBRARY_ITEM_FIELDS),
        ),
        (
            const.SERVICE_EDIT_LIBRARY_ITEM,
            act.LibraryItemEdit,
            const.FIELD_ITEM_ID,
            "patch",
            _edit_schema(const.FIELD_ITEM_ID, LIBRARY_ITEM_FIELDS),
        ),
        (
            const.SERVICE_DELETE_LIBRARY_ITEM,
            act.LibraryItemDelete,
            const.FIELD_ITEM_ID,
            None,
            _id_schema(const.FIELD_ITEM_ID),
        ),
        (
            const.SERVICE_TOGGLE_LIBRARY_ITEM,
            act.LibraryItemToggleActive,
            const.FIELD_ITEM_ID,
            None,
            _id_schema(const.FIELD_ITEM_ID),
        ),
        (const.SERVICE_ADD_TASK, act.TaskInstanceAdd, None, "instance", _add_schema(TASK_FIELDS)),
        (
            const.SERVICE_EDIT_TASK,
            act.TaskInstanceEdit,
            const.FIELD_INSTANCE_ID,
            "patch",
            _edit_schema(const.FIELD_INSTANCE_ID, TASK_FIELDS),
        ),
        (
            const.SERVICE_DELETE_TASK,
            act.TaskInstanceDelete,
            const.FIELD_INSTANCE_ID,
            None,
            _id_schema(const.FIELD_INSTANCE_ID),
        ),
        (
            const.SERVICE_UPDATE_SETTINGS,
            act.SettingsUpdate,
            None,
            "patch",
            UPDATE_SETTINGS_SCHEMA,
        ),
    ]
    for service, action_cls, id_field, payload_key, schema in content_services:
        hass.services.async_register(
            const.DOMAIN,
            service,
            dispatch_handler(service, action_cls, id_field, payload_key),
            schema=schema,
        )

    async def handle_undo_last(call: ServiceCall) -> None:
        """Handle undoing the most recent award for a subject."""
        coordinator = get_coordinator(hass)
        result = await coordinator.award_manager.async_undo_last(
            call.data[const.FIELD_TYPE],
            call.data[const.FIELD_SUBJECT_ID],
            action_id=call.data.get(const.FIELD_ACTION_ID),
        )
        _raise_if_refused(const.SERVICE_UNDO_LAST, result)

    async def handle_spend_coins(call: ServiceCall) -> None:
        """Handle spending coins on a reward."""
        coordinator = get_coordinator(hass)
        result = await coordinator.award_manager.async_spend_coins(
            call.data[const.FIELD_AMOUNT],
            call.data[const.FIELD_LABEL],
            action_id=call.data.get(const.FIELD_ACTION_ID),
        )
        _raise_if_refused(const.SERVICE_SPEND_COINS, result)

    async def handle_reroll_boss(call: ServiceCall) -> None:
        """Handle rerolling the current weekly boss."""
        coordinator = get_coordinator(hass)
        await coordinator.day_manager.async_reroll_boss(
            action_id=call.data.get(const.FIELD_ACTION_ID)
        )

    async def handle_export_state(call: ServiceCall) -> ServiceResponse:
        """Return the full snapshot as the service response."""
        coordinator = get_coordinator(hass)
        const.LOGGER.info("INFO: Exporting QuestLog state")
        return coordinator.export_state()

    async def handle_import_state(call: ServiceCall) -> None:
        """Handle replacing all data with an imported snapshot."""
        coordinator = get_coordinator(hass)
        await coordinator.async_import_state(call.data[const.FIELD_STATE])

    async def handle_reset_all_data(call: ServiceCall) -> None:
        """Handle wiping all QuestLog data."""
        coordinator = get_coordinator(hass)
        await coordinator.async_reset()

    hass.services.async_register(
        const.DOMAIN, const.SERVICE_UNDO_LAST, handle_undo_last, schema=UNDO_LAST_SCHEMA
    )
    hass.services.async_register(
        const.DOMAIN, const.SERVICE_SPEND_COINS, handle_spend_coins, schema=SPEND_COINS_SCHEMA
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REROLL_BOSS,
        handle_reroll_boss,
        schema=ACTION_ID_ONLY_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_EXPORT_STATE,
        handle_export_state,
        schema=EXPORT_STATE_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_IMPORT_STATE,
        handle_import_state,
        schema=IMPORT_STATE_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_RESET_ALL_DATA,
        handle_reset_all_data,
        schema=RESET_ALL_DATA_SCHEMA,
    )

    const.LOGGER.info("INFO: QuestLog services have been registered successfully")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister QuestLog services when unloading the integration."""
    services = [
        const.SERVICE_AWARD_TASK,
        const.SERVICE_UNCOMPLETE_TASK,
        const.SERVICE_AWARD_HABIT,
        const.SERVICE_HABIT_INCREMENT,
        const.SERVICE_HABIT_DECREMENT,
        const.SERVICE_AWARD_LIBRARY_ITEM,
        const.SERVICE_AWARD_CHALLENGE,
        const.SERVICE_AWARD_BOSS_TICK,
        const.SERVICE_UNDO_LAST,
        const.SERVICE_SPEND_COINS,
        const.SERVICE_START_POWER_HOUR,
        const.SERVICE_REROLL_BOSS,
        const.SERVICE_EXPORT_STATE,
        const.SERVICE_IMPORT_STATE,
        const.SERVICE_RESET_ALL_DATA,
        const.SERVICE_ADD_HABIT,
        const.SERVICE_EDIT_HABIT,
        const.SERVICE_DELETE_HABIT,
        const.SERVICE_TOGGLE_HABIT,
        const.SERVICE_ADD_TASK_RULE,
        const.SERVICE_EDIT_TASK_RULE,
        const.SERVICE_DELETE_TASK_RULE,
        const.SERVICE_TOGGLE_TASK_RULE,
        const.SERVICE_ADD_LIBRARY_ITEM,
        const.SERVICE_EDIT_LIBRARY_ITEM,
        const.SERVICE_DELETE_LIBRARY_ITEM,
        const.SERVICE_TOGGLE_LIBRARY_ITEM,
        const.SERVICE_ADD_TASK,
        const.SERVICE_EDIT_TASK,
        const.SERVICE_DELETE_TASK,
        const.SERVICE_UPDATE_SETTINGS,
    ]

    for service in services:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("INFO: QuestLog services have been unregistered")
