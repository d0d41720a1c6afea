"""Tests for QuestLogCoordinator: load/save, dispatch, subscribe, export/import, reset."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import patch

import pytest
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.questlog import actions as act, const
from custom_components.questlog.coordinator import QuestLogCoordinator
from tests.conftest import (
    FROZEN_NOW,
    TODAY,
    create_habit,
    create_ledger_entry,
    create_library_item,
    create_sample_state,
)

# =============================================================================
# TEST: LOAD / SAVE
# =============================================================================


class TestFirstRun:
    """Test startup without stored data."""

    async def test_defaults_saved(
        self, hass_storage: dict[str, Any], coordinator: QuestLogCoordinator
    ) -> None:
        data = coordinator.data
        assert data[const.DATA_META][const.DATA_META_SCHEMA_VERSION] == const.SCHEMA_VERSION
        assert coordinator.today == TODAY
        assert coordinator.coins == 0
        assert coordinator.streak == 0
        assert data[const.DATA_WEEKLY_BOSS][const.DATA_BOSS_GOALS] == []
        assert const.STORAGE_KEY in hass_storage

    async def test_dispatch_persists(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        coordinator: QuestLogCoordinator,
    ) -> None:
        assert await coordinator.async_dispatch(
            act.HabitAdd(item={const.DATA_ENTITY_TITLE: "Stretch"})
        )
        await hass.async_block_till_done()

        stored = hass_storage[const.STORAGE_KEY]["data"]
        (habit,) = stored[const.DATA_HABITS].values()
        assert habit[const.DATA_ENTITY_TITLE] == "Stretch"


class TestLoadStored:
    """Test startup from stored snapshots."""

    @pytest.fixture
    def mock_storage_data(self) -> dict[str, Any]:
        """Stored snapshot with history from last week."""
        return create_sample_state(
            ledger=[
                create_ledger_entry("habit", "h_stretch", "2025-03-08", points=10),
                create_ledger_entry("mint", "coins", "2025-03-08", coins=3),
                create_ledger_entry("purchase", "coins", "2025-03-09", coins=-1),
            ],
            profile={"coins": 999, "best_streak": 4},
        )

    async def test_aggregates_rebuilt_from_ledger(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        # Stored caches are ignored in favor of the ledger
        assert coordinator.coins == 2
        assert coordinator.data[const.DATA_COINS_TOTAL] == 2
        assert coordinator.data[const.DATA_PROFILE][const.DATA_PROFILE_BEST_STREAK] == 4
        assert coordinator.data[const.DATA_PROGRESS]["2025-03-08"][
            const.DATA_SUMMARY_HABITS_DONE
        ] == 1

    async def test_history_lookup(self, coordinator: QuestLogCoordinator) -> None:
        assert coordinator.habit_done("h_stretch", "2025-03-08")
        assert not coordinator.habit_done("h_stretch", "2025-03-09")


class TestStaleStoredDay:
    """Test startup after the app was closed over midnight."""

    @pytest.fixture
    def mock_storage_data(self) -> dict[str, Any]:
        """Snapshot last touched on Saturday."""
        return create_sample_state(today={"day": "2025-03-08", "coins_unminted": 40})

    async def test_rollover_on_startup(self, coordinator: QuestLogCoordinator) -> None:
        assert coordinator.today == TODAY
        assert coordinator.data[const.DATA_TODAY][const.DATA_TODAY_COINS_UNMINTED] == 40


class TestCorruptStorage:
    """Test load failing soft."""

    @pytest.fixture
    def mock_storage_data(self) -> Any:
        """Storage holding something other than an object."""
        return ["not", "a", "snapshot"]

    async def test_starts_from_defaults(self, coordinator: QuestLogCoordinator) -> None:
        assert coordinator.data[const.DATA_LEDGER] == []
        assert coordinator.today == TODAY


# =============================================================================
# TEST: DISPATCH / SUBSCRIBE
# =============================================================================


class TestDispatch:
    """Test action dispatch."""

    async def test_rejected_action_leaves_state(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        before = coordinator.export_state()
        assert not await coordinator.async_dispatch(act.HabitEdit(id="missing", patch={}))
        assert not await coordinator.async_dispatch(
            act.HabitAdd(item={const.DATA_ENTITY_TITLE: ""})
        )
        assert coordinator.data == before

    async def test_malformed_fields_rejected(self, coordinator: QuestLogCoordinator) -> None:
        before = coordinator.export_state()
        for action in (
            act.HabitAdd(item={const.DATA_ENTITY_TITLE: "Stretch", const.DATA_HABIT_KIND: ["binary"]}),
            act.HabitAdd(
                item={const.DATA_ENTITY_TITLE: "Stretch", const.DATA_HABIT_POINTS_ON_COMPLETE: 1e400}
            ),
            act.LibraryItemAdd(
                item={const.DATA_ENTITY_TITLE: "Walk", const.DATA_LIBRARY_LAST_DONE_AT: "yesterday"}
            ),
            act.LedgerAppend(entry={**create_ledger_entry("habit", "h1", TODAY), "type": ["task"]}),
        ):
            assert not await coordinator.async_dispatch(action)
        assert coordinator.data == before

    async def test_duplicate_action_id(self, coordinator: QuestLogCoordinator) -> None:
        action = act.HabitAdd(item={const.DATA_ENTITY_TITLE: "Stretch"}, action_id="add-1")
        assert await coordinator.async_dispatch(action)
        assert await coordinator.async_dispatch(action)
        assert len(coordinator.data[const.DATA_HABITS]) == 1

    async def test_rejected_action_id_released(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        assert not await coordinator.async_dispatch(
            act.HabitAdd(item={const.DATA_ENTITY_TITLE: ""}, action_id="add-1")
        )
        assert await coordinator.async_dispatch(
            act.HabitAdd(item={const.DATA_ENTITY_TITLE: "Stretch"}, action_id="add-1")
        )
        assert len(coordinator.data[const.DATA_HABITS]) == 1

    async def test_recent_ids_are_bounded(self, coordinator: QuestLogCoordinator) -> None:
        for index in range(const.RECENT_ACTION_ID_LIMIT + 1):
            assert coordinator.claim_action_id(f"id-{index}")
        # The oldest id fell out of the window
        assert coordinator.claim_action_id("id-0")
        assert not coordinator.claim_action_id(f"id-{const.RECENT_ACTION_ID_LIMIT}")

    async def test_ledger_append_rebuilds_aggregates(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        entry = create_ledger_entry("mint", "coins", TODAY, coins=2)
        assert await coordinator.async_dispatch(act.LedgerAppend(entry=entry))
        assert coordinator.coins == 2
        assert coordinator.data[const.DATA_PROGRESS][TODAY][const.DATA_SUMMARY_COINS_EARNED] == 2

    async def test_settings_update(self, coordinator: QuestLogCoordinator) -> None:
        assert await coordinator.async_dispatch(
            act.SettingsUpdate(patch={const.DATA_SETTINGS_POINTS_PER_COIN: 50})
        )
        assert coordinator.data[const.DATA_SETTINGS][const.DATA_SETTINGS_POINTS_PER_COIN] == 50


class TestSubscribe:
    """Test subscriber notifications."""

    async def test_listener_gets_state_and_action_name(
        self, hass: HomeAssistant, coordinator: QuestLogCoordinator
    ) -> None:
        calls: list[tuple[dict[str, Any], str]] = []

        @callback
        def listener(state: dict[str, Any], source: str) -> None:
            calls.append((state, source))

        unsubscribe = coordinator.async_subscribe(listener)
        await coordinator.async_dispatch(act.HabitAdd(item={const.DATA_ENTITY_TITLE: "Read"}))
        await hass.async_block_till_done()

        assert len(calls) == 1
        state, source = calls[0]
        assert source == "HabitAdd"
        assert len(state[const.DATA_HABITS]) == 1

        unsubscribe()
        await coordinator.async_dispatch(act.AppTick())
        await hass.async_block_till_done()
        assert len(calls) == 1

    async def test_unchanged_action_still_publishes(
        self, hass: HomeAssistant, coordinator: QuestLogCoordinator
    ) -> None:
        sources: list[str] = []

        @callback
        def listener(_state: dict[str, Any], source: str) -> None:
            sources.append(source)

        unsubscribe = coordinator.async_subscribe(listener)
        await coordinator.async_dispatch(act.AppTick())
        await hass.async_block_till_done()
        unsubscribe()
        assert sources == ["AppTick"]

    async def test_rejected_action_does_not_publish(
        self, hass: HomeAssistant, coordinator: QuestLogCoordinator
    ) -> None:
        sources: list[str] = []

        @callback
        def listener(_state: dict[str, Any], source: str) -> None:
            sources.append(source)

        unsubscribe = coordinator.async_subscribe(listener)
        await coordinator.async_dispatch(act.HabitDelete(id="missing"))
        await hass.async_block_till_done()
        unsubscribe()
        assert sources == []


# =============================================================================
# TEST: EXPORT / IMPORT / RESET
# =============================================================================


class TestExportImport:
    """Test whole-state export and import."""

    @pytest.fixture
    def mock_storage_data(self) -> dict[str, Any]:
        """Seeded snapshot."""
        return create_sample_state()

    async def test_export_is_a_copy(self, coordinator: QuestLogCoordinator) -> None:
        exported = coordinator.export_state()
        exported[const.DATA_HABITS].clear()
        assert coordinator.data[const.DATA_HABITS]

    async def test_export_json(self, coordinator: QuestLogCoordinator) -> None:
        assert json.loads(coordinator.export_state_json()) == coordinator.data

    async def test_round_trip(self, coordinator: QuestLogCoordinator) -> None:
        await coordinator.award_manager.async_award_habit("h_stretch")
        exported = coordinator.export_state_json()

        await coordinator.async_reset()
        assert coordinator.data[const.DATA_LEDGER] == []

        await coordinator.async_import_state(exported)
        restored = json.loads(exported)
        assert coordinator.data[const.DATA_LEDGER] == restored[const.DATA_LEDGER]
        assert coordinator.data[const.DATA_HABITS] == restored[const.DATA_HABITS]
        assert coordinator.data[const.DATA_WEEKLY_BOSS] == restored[const.DATA_WEEKLY_BOSS]

    async def test_import_store_envelope(self, coordinator: QuestLogCoordinator) -> None:
        envelope = {"version": 1, "key": const.STORAGE_KEY, "data": {"habits": [create_habit("x")]}}
        await coordinator.async_import_state(envelope)
        assert set(coordinator.data[const.DATA_HABITS]) == {"x"}

    async def test_malformed_json_leaves_state(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        before = coordinator.export_state()
        with pytest.raises(HomeAssistantError):
            await coordinator.async_import_state("{not json")
        with pytest.raises(HomeAssistantError):
            await coordinator.async_import_state("[1, 2]")
        assert coordinator.data == before

    async def test_import_salvages_malformed_fields(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        payload = (
            '{"weekly_boss": {"week_start_day": "2025-03-10", "goals": 5},'
            ' "ledger": [{"id": "e1", "type": ["task"], "day": "2025-03-09"}],'
            ' "habits": [{"id": "h1", "title": "Stretch", "kind": ["binary"]},'
            ' {"id": "h2", "title": "Read", "pointsOnComplete": 1e400},'
            ' {"id": "h3", "title": "Walk"}],'
            ' "library": [{"id": "l1", "title": "Tidy", "lastDoneAt": "yesterday"}]}'
        )
        await coordinator.async_import_state(payload)

        assert set(coordinator.data[const.DATA_HABITS]) == {"h3"}
        assert coordinator.data[const.DATA_LIBRARY] == {}
        assert coordinator.data[const.DATA_LEDGER] == []
        assert coordinator.data[const.DATA_WEEKLY_BOSS][const.DATA_BOSS_GOALS] == []

    async def test_import_legacy_without_boss(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        legacy = {
            "schemaVersion": 1,
            "library": [create_library_item("walk", "Walk", points=10)],
            "ledger": [
                {
                    "id": "e1",
                    "day": "2025-03-09",
                    "type": "mint",
                    "subjectId": "coins",
                    "coinsDelta": 3,
                }
            ],
        }
        await coordinator.async_import_state(json.dumps(legacy))

        assert coordinator.coins == 3
        boss = coordinator.data[const.DATA_WEEKLY_BOSS]
        assert boss[const.DATA_BOSS_WEEK_START_DAY] == TODAY
        assert [g[const.DATA_BOSS_GOAL_LINKED_TASK_ID] for g in boss[const.DATA_BOSS_GOALS]] == [
            "walk"
        ]

    async def test_reset(
        self, hass: HomeAssistant, coordinator: QuestLogCoordinator
    ) -> None:
        await coordinator.award_manager.async_award_habit("h_stretch", action_id="a-1")
        sources: list[str] = []

        @callback
        def listener(_state: dict[str, Any], source: str) -> None:
            sources.append(source)

        unsubscribe = coordinator.async_subscribe(listener)
        await coordinator.async_reset()
        await hass.async_block_till_done()
        unsubscribe()

        data = coordinator.data
        assert data[const.DATA_LEDGER] == []
        assert data[const.DATA_HABITS] == {}
        assert coordinator.coins == 0
        assert coordinator.today == TODAY
        assert "reset" in sources
        # Remembered action ids are cleared too
        assert coordinator.claim_action_id("a-1")


# =============================================================================
# TEST: LIFECYCLE
# =============================================================================


async def test_manual_refresh_runs_heartbeat(coordinator: QuestLogCoordinator) -> None:
    """async_refresh() runs a heartbeat and keeps the snapshot."""
    await coordinator.async_refresh()
    assert coordinator.last_update_success
    assert coordinator.today == TODAY


async def test_setup_runs_first_refresh(
    hass: HomeAssistant, freezer: Any, mock_config_entry: MockConfigEntry
) -> None:
    """Setup runs the startup heartbeat through the first refresh."""
    freezer.move_to(FROZEN_NOW)
    mock_config_entry.add_to_hass(hass)
    with patch.object(
        QuestLogCoordinator,
        "async_config_entry_first_refresh",
        autospec=True,
        side_effect=QuestLogCoordinator.async_config_entry_first_refresh,
    ) as first_refresh:
        assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
        await hass.async_block_till_done()

    first_refresh.assert_awaited_once()
    coordinator = hass.data[const.DOMAIN][mock_config_entry.entry_id][const.COORDINATOR]
    assert coordinator.last_update_success
    assert coordinator.today == TODAY


async def test_unload_entry(
    hass: HomeAssistant, init_integration: MockConfigEntry
) -> None:
    """Unloading removes services and the coordinator."""
    assert hass.services.has_service(const.DOMAIN, const.SERVICE_AWARD_TASK)
    assert hass.services.has_service(const.DOMAIN, const.SERVICE_UPDATE_SETTINGS)

    assert await hass.config_entries.async_unload(init_integration.entry_id)
    await hass.async_block_till_done()

    assert init_integration.state is ConfigEntryState.NOT_LOADED
    assert init_integration.entry_id not in hass.data[const.DOMAIN]
    assert not hass.services.has_service(const.DOMAIN, const.SERVICE_AWARD_TASK)
    assert not hass.services.has_service(const.DOMAIN, const.SERVICE_UPDATE_SETTINGS)


async def test_remove_entry_wipes_storage(
    hass: HomeAssistant,
    hass_storage: dict[str, Any],
    init_integration: MockConfigEntry,
) -> None:
    """Removing the entry deletes the stored snapshot."""
    assert const.STORAGE_KEY in hass_storage

    assert await hass.config_entries.async_remove(init_integration.entry_id)
    await hass.async_block_till_done()

    assert const.STORAGE_KEY not in hass_storage
