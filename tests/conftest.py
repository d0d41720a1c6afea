"""Shared fixtures for QuestLog tests."""

from __future__ import annotations

from typing import Any
from zoneinfo import ZoneInfo

import pytest
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.questlog import const
from custom_components.questlog.coordinator import QuestLogCoordinator
from custom_components.questlog.utils import dt_utils

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name

# Monday 2025-03-10, 13:00 in US/Pacific (the hass fixture's time zone)
FROZEN_NOW = "2025-03-10 20:00:00"
TODAY = "2025-03-10"
WEEK_START = "2025-03-10"


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture(autouse=True)
def reset_default_timezone() -> Any:
    """Keep the module-level time zone from leaking between tests."""
    yield
    dt_utils.set_default_timezone(ZoneInfo("UTC"))


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry."""
    return MockConfigEntry(
        domain=const.DOMAIN,
        title=const.QUESTLOG_TITLE,
        data={},
        entry_id="test_entry_id",
        unique_id="test_unique_id",
    )


@pytest.fixture
def mock_storage_data() -> dict[str, Any] | None:
    """Stored snapshot to start from (None = first run)."""
    return None


@pytest.fixture
async def init_integration(
    hass: HomeAssistant,
    hass_storage: dict[str, Any],
    freezer: Any,
    mock_config_entry: MockConfigEntry,  # pylint: disable=redefined-outer-name
    mock_storage_data: dict[str, Any] | None,  # pylint: disable=redefined-outer-name
) -> MockConfigEntry:
    """Set up the QuestLog integration at a frozen Monday afternoon."""
    freezer.move_to(FROZEN_NOW)
    if mock_storage_data is not None:
        hass_storage[const.STORAGE_KEY] = {
            "version": const.STORAGE_VERSION,
            "minor_version": 1,
            "key": const.STORAGE_KEY,
            "data": mock_storage_data,
        }

    mock_config_entry.add_to_hass(hass)
    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()
    return mock_config_entry


@pytest.fixture
def coordinator(
    hass: HomeAssistant,
    init_integration: MockConfigEntry,  # pylint: disable=redefined-outer-name
) -> QuestLogCoordinator:
    """The coordinator of the set-up entry."""
    return hass.data[const.DOMAIN][init_integration.entry_id][const.COORDINATOR]


# =============================================================================
# Sample Data Builders
# =============================================================================


def create_habit(
    habit_id: str,
    title: str = "Stretch",
    *,
    kind: str = const.HABIT_KIND_BINARY,
    points: int = 10,
    target: int = 1,
    by_weekday: list[int] | None = None,
) -> dict[str, Any]:
    """Create stored habit data."""
    return {
        const.DATA_ENTITY_ID: habit_id,
        const.DATA_ENTITY_TITLE: title,
        const.DATA_HABIT_KIND: kind,
        const.DATA_HABIT_TARGET_PER_DAY: target,
        const.DATA_HABIT_POINTS_ON_COMPLETE: points,
        const.DATA_HABIT_BY_WEEKDAY: by_weekday,
        const.DATA_ENTITY_ACTIVE: True,
    }


def create_library_item(
    item_id: str,
    title: str | None = None,
    *,
    points: int = 10,
    **extra: Any,
) -> dict[str, Any]:
    """Create stored library item data."""
    item = {
        const.DATA_ENTITY_ID: item_id,
        const.DATA_ENTITY_TITLE: title or f"Item {item_id}",
        const.DATA_LIBRARY_POINTS: points,
        const.DATA_LIBRARY_COOLDOWN_HOURS: None,
        const.DATA_LIBRARY_MAX_PER_DAY: None,
        const.DATA_LIBRARY_ALLOWED_WEEKDAYS: None,
        const.DATA_LIBRARY_INCLUDE_IN_CHALLENGES: True,
        const.DATA_LIBRARY_INCLUDE_IN_BOSS: True,
        const.DATA_LIBRARY_PINNED: False,
        const.DATA_ENTITY_ACTIVE: True,
        const.DATA_LIBRARY_LAST_DONE_AT: None,
    }
    item.update(extra)
    return item


def create_task_rule(
    rule_id: str, title: str = "Dishes", *, points: int = 20, by_weekday: list[int] | None = None
) -> dict[str, Any]:
    """Create stored task rule data."""
    return {
        const.DATA_ENTITY_ID: rule_id,
        const.DATA_ENTITY_TITLE: title,
        const.DATA_TASK_POINTS: points,
        const.DATA_TASK_RULE_BY_WEEKDAY: by_weekday,
        const.DATA_ENTITY_ACTIVE: True,
    }


def create_ledger_entry(
    entry_type: str,
    subject_id: str,
    day: str,
    *,
    points: int = 0,
    coins: int = 0,
    entry_id: str | None = None,
) -> dict[str, Any]:
    """Create a ledger entry with a predictable id."""
    return {
        const.DATA_LEDGER_ID: entry_id or f"{entry_type}-{subject_id}-{day}-{points}-{coins}",
        const.DATA_LEDGER_TS: 0,
        const.DATA_LEDGER_DAY: day,
        const.DATA_LEDGER_TYPE: entry_type,
        const.DATA_LEDGER_SUBJECT_ID: subject_id,
        const.DATA_LEDGER_SUBJECT_LABEL: subject_id,
        const.DATA_LEDGER_POINTS_DELTA: points,
        const.DATA_LEDGER_COINS_DELTA: coins,
    }


def create_sample_state(**overrides: Any) -> dict[str, Any]:
    """A stored snapshot with two habits, one daily rule and three quick actions.

    Day is the frozen TODAY so setup does not roll over.
    """
    state: dict[str, Any] = {
        const.DATA_META: {const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION},
        const.DATA_TODAY: {const.DATA_TODAY_DAY: TODAY},
        const.DATA_HABITS: {
            "h_stretch": create_habit("h_stretch", "Stretch", points=10),
            "h_water": create_habit(
                "h_water",
                "Water",
                kind=const.HABIT_KIND_COUNTER,
                points=20,
                target=3,
            ),
        },
        const.DATA_TASK_RULES: {"r_dishes": create_task_rule("r_dishes", "Dishes", points=20)},
        const.DATA_LIBRARY: {
            "lib_walk": create_library_item("lib_walk", "Walk", points=10),
            "lib_read": create_library_item("lib_read", "Read", points=6, max_per_day=1),
            "lib_tidy": create_library_item("lib_tidy", "Tidy", points=4, cooldown_hours=1),
        },
        const.DATA_LEDGER: [],
    }
    state.update(overrides)
    return state


def today_instance_id(data: dict[str, Any], rule_id: str = "r_dishes") -> str:
    """Id of the task instance generated from a rule for the current day."""
    day = data[const.DATA_TODAY][const.DATA_TODAY_DAY]
    for instance_id, instance in data[const.DATA_TASK_INSTANCES].items():
        if (
            instance[const.DATA_TASK_INSTANCE_RULE_ID] == rule_id
            and instance[const.DATA_TASK_INSTANCE_DAY] == day
        ):
            return instance_id
    raise AssertionError(f"No instance of {rule_id} for {day}")
