"""Tests for AwardManager workflows against a live coordinator.

Setup seeds two habits (binary Stretch, counter Water x3), a daily Dishes rule
and three quick actions, frozen on Monday 2025-03-10.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest
from homeassistant.core import callback

from custom_components.questlog import actions as act, const
from custom_components.questlog.coordinator import QuestLogCoordinator
from custom_components.questlog.engines import AwardEngine
from custom_components.questlog.managers import AwardResult
from tests.conftest import (
    TODAY,
    create_ledger_entry,
    create_sample_state,
    today_instance_id,
)


@pytest.fixture
def mock_storage_data() -> dict[str, Any]:
    """Seeded snapshot for award tests."""
    return create_sample_state()


async def _give_coins(coordinator: QuestLogCoordinator, coins: int) -> None:
    entry = create_ledger_entry(
        const.LEDGER_TYPE_MINT, const.LEDGER_SUBJECT_COINS, TODAY, coins=coins
    )
    assert await coordinator.async_dispatch(act.LedgerAppend(entry=entry))


async def _set_bucket(coordinator: QuestLogCoordinator, bucket: int) -> None:
    assert await coordinator.async_dispatch(
        act.TodayPatch(patch={const.DATA_TODAY_COINS_UNMINTED: bucket})
    )


def _entries(coordinator: QuestLogCoordinator, entry_type: str) -> list[dict[str, Any]]:
    return [
        entry
        for entry in coordinator.data[const.DATA_LEDGER]
        if entry[const.DATA_LEDGER_TYPE] == entry_type
    ]


# =============================================================================
# TEST: TASKS, MINT AND RECLAIM
# =============================================================================


class TestTaskAwards:
    """Test task completion with coin minting and reclaiming."""

    async def test_award_task(self, coordinator: QuestLogCoordinator) -> None:
        instance_id = today_instance_id(coordinator.data)
        result = await coordinator.award_manager.async_award_task(instance_id)

        assert result == AwardResult(ok=True, points=20, coins=0)
        data = coordinator.data
        assert data[const.DATA_TASK_INSTANCES][instance_id][const.DATA_TASK_INSTANCE_DONE]
        assert data[const.DATA_TODAY][const.DATA_TODAY_POINTS_RUNTIME] == 20
        assert data[const.DATA_TODAY][const.DATA_TODAY_COINS_UNMINTED] == 20
        assert data[const.DATA_PROGRESS][TODAY][const.DATA_SUMMARY_TASKS_DONE] == 1
        assert data[const.DATA_PROGRESS][TODAY][const.DATA_SUMMARY_POINTS] == 20

    async def test_award_task_twice_refused(self, coordinator: QuestLogCoordinator) -> None:
        instance_id = today_instance_id(coordinator.data)
        await coordinator.award_manager.async_award_task(instance_id)
        result = await coordinator.award_manager.async_award_task(instance_id)
        assert result == AwardResult(ok=False, reason=const.REASON_ALREADY_DONE)
        assert len(_entries(coordinator, const.LEDGER_TYPE_TASK)) == 1

    async def test_unknown_task(self, coordinator: QuestLogCoordinator) -> None:
        result = await coordinator.award_manager.async_award_task("missing")
        assert result.reason == const.REASON_NOT_FOUND

    async def test_award_mints_coin(self, coordinator: QuestLogCoordinator) -> None:
        await _set_bucket(coordinator, 90)
        result = await coordinator.award_manager.async_award_task(
            today_instance_id(coordinator.data)
        )

        assert result.coins == 1
        assert coordinator.coins == 1
        assert coordinator.data[const.DATA_TODAY][const.DATA_TODAY_COINS_UNMINTED] == 10
        (mint,) = _entries(coordinator, const.LEDGER_TYPE_MINT)
        assert mint[const.DATA_LEDGER_COINS_DELTA] == 1
        assert mint[const.DATA_LEDGER_SUBJECT_ID] == const.LEDGER_SUBJECT_COINS

    async def test_uncomplete_reclaims_coin(self, coordinator: QuestLogCoordinator) -> None:
        instance_id = today_instance_id(coordinator.data)
        await _set_bucket(coordinator, 90)
        await coordinator.award_manager.async_award_task(instance_id)

        result = await coordinator.award_manager.async_uncomplete_task(instance_id)

        assert result == AwardResult(ok=True, points=-20, coins=-1)
        data = coordinator.data
        assert coordinator.coins == 0
        assert data[const.DATA_TODAY][const.DATA_TODAY_COINS_UNMINTED] == 90
        assert data[const.DATA_TODAY][const.DATA_TODAY_POINTS_RUNTIME] == 0
        assert not data[const.DATA_TASK_INSTANCES][instance_id][const.DATA_TASK_INSTANCE_DONE]
        summary = data[const.DATA_PROGRESS][TODAY]
        assert summary[const.DATA_SUMMARY_POINTS] == 0
        # Undo entries never decrement counters
        assert summary[const.DATA_SUMMARY_TASKS_DONE] == 1

    async def test_reclaim_refused_leaves_state_untouched(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        instance_id = today_instance_id(coordinator.data)
        await _set_bucket(coordinator, 90)
        await coordinator.award_manager.async_award_task(instance_id)
        spent = await coordinator.award_manager.async_spend_coins(1, "Ice cream")
        assert spent.ok
        before = coordinator.export_state()

        result = await coordinator.award_manager.async_uncomplete_task(instance_id)

        assert result == AwardResult(
            ok=False, reason=const.REASON_INSUFFICIENT_COINS_TO_RECLAIM
        )
        assert coordinator.data == before

    async def test_uncomplete_not_done(self, coordinator: QuestLogCoordinator) -> None:
        result = await coordinator.award_manager.async_uncomplete_task(
            today_instance_id(coordinator.data)
        )
        assert result.reason == const.REASON_NOT_DONE


# =============================================================================
# TEST: ACTION IDS
# =============================================================================


class TestActionIds:
    """Test repeated deliveries are applied once."""

    async def test_duplicate_action_id_applied_once(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        manager = coordinator.award_manager
        first = await manager.async_award_habit("h_stretch", action_id="tap-1")
        second = await manager.async_award_habit("h_stretch", action_id="tap-1")

        assert first.points == 10
        assert second == AwardResult(ok=True)
        assert len(_entries(coordinator, const.LEDGER_TYPE_HABIT)) == 1

    async def test_refused_action_id_can_be_retried(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        manager = coordinator.award_manager
        instance_id = today_instance_id(coordinator.data)

        refused = await manager.async_uncomplete_task(instance_id, action_id="undo-1")
        assert not refused.ok

        await manager.async_award_task(instance_id)
        retried = await manager.async_uncomplete_task(instance_id, action_id="undo-1")
        assert retried == AwardResult(ok=True, points=-20, coins=0)


# =============================================================================
# TEST: HABITS
# =============================================================================


class TestHabitAwards:
    """Test binary and counter habits."""

    async def test_binary_habit(self, coordinator: QuestLogCoordinator) -> None:
        result = await coordinator.award_manager.async_award_habit("h_stretch")

        assert result == AwardResult(ok=True, points=10, coins=0)
        assert coordinator.habit_done("h_stretch")
        assert coordinator.data[const.DATA_PROGRESS][TODAY][const.DATA_SUMMARY_HABITS_DONE] == 1

        again = await coordinator.award_manager.async_award_habit("h_stretch")
        assert again.reason == const.REASON_ALREADY_DONE

    async def test_binary_habit_undo(self, coordinator: QuestLogCoordinator) -> None:
        await coordinator.award_manager.async_award_habit("h_stretch")
        result = await coordinator.award_manager.async_undo_last(
            const.LEDGER_TYPE_HABIT, "h_stretch"
        )
        assert result == AwardResult(ok=True, points=-10, coins=0)
        assert not coordinator.habit_done("h_stretch")

        nothing = await coordinator.award_manager.async_undo_last(
            const.LEDGER_TYPE_HABIT, "h_stretch"
        )
        assert nothing.reason == const.REASON_NOTHING_TO_UNDO

    async def test_wrong_kind_and_inactive(self, coordinator: QuestLogCoordinator) -> None:
        manager = coordinator.award_manager
        assert (await manager.async_award_habit("h_water")).reason == const.REASON_WRONG_HABIT_KIND
        assert (
            await manager.async_habit_increment("h_stretch")
        ).reason == const.REASON_WRONG_HABIT_KIND
        assert (await manager.async_award_habit("missing")).reason == const.REASON_NOT_FOUND

        assert await coordinator.async_dispatch(act.HabitToggleActive(id="h_stretch"))
        assert (await manager.async_award_habit("h_stretch")).reason == const.REASON_INACTIVE

    async def test_counter_habit_awards_at_target(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        manager = coordinator.award_manager
        results = [await manager.async_habit_increment("h_water") for _ in range(4)]

        assert [r.points for r in results] == [0, 0, 20, 0]
        assert all(r.ok for r in results)
        status = coordinator.data[const.DATA_TODAY][const.DATA_TODAY_HABITS_STATUS]["h_water"]
        assert status == {const.DATA_HABIT_STATUS_TALLY: 3, const.DATA_HABIT_STATUS_DONE: True}
        assert len(_entries(coordinator, const.LEDGER_TYPE_HABIT)) == 1

    async def test_counter_habit_decrement_below_target_undoes(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        manager = coordinator.award_manager
        for _ in range(3):
            await manager.async_habit_increment("h_water")

        result = await manager.async_habit_decrement("h_water")

        assert result == AwardResult(ok=True, points=-20, coins=0)
        status = coordinator.data[const.DATA_TODAY][const.DATA_TODAY_HABITS_STATUS]["h_water"]
        assert status == {const.DATA_HABIT_STATUS_TALLY: 2, const.DATA_HABIT_STATUS_DONE: False}
        assert not coordinator.habit_done("h_water")

    async def test_counter_decrement_floors_at_zero(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        result = await coordinator.award_manager.async_habit_decrement("h_water")
        assert result.ok
        status = coordinator.data[const.DATA_TODAY][const.DATA_TODAY_HABITS_STATUS]["h_water"]
        assert status[const.DATA_HABIT_STATUS_TALLY] == 0


# =============================================================================
# TEST: QUICK ACTIONS, CHALLENGES, BOSS
# =============================================================================


class TestLibraryAwards:
    """Test quick-action throttling."""

    async def test_max_per_day(self, coordinator: QuestLogCoordinator) -> None:
        manager = coordinator.award_manager
        assert (await manager.async_award_library_tap("lib_read")).points == 6
        refused = await manager.async_award_library_tap("lib_read")
        assert refused.reason == const.REASON_MAX_PER_DAY

    async def test_cooldown(self, coordinator: QuestLogCoordinator, freezer: Any) -> None:
        manager = coordinator.award_manager
        assert (await manager.async_award_library_tap("lib_tidy")).ok
        item = coordinator.data[const.DATA_LIBRARY]["lib_tidy"]
        assert item[const.DATA_LIBRARY_LAST_DONE_AT] is not None

        assert (
            await manager.async_award_library_tap("lib_tidy")
        ).reason == const.REASON_COOLING_DOWN

        freezer.tick(timedelta(hours=1, seconds=1))
        assert (await manager.async_award_library_tap("lib_tidy")).ok


class TestChallengeAwards:
    """Test awarding today's challenges."""

    async def test_award_challenge_uses_snapshot(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        assignment = coordinator.data[const.DATA_DAILY_ASSIGNMENTS][TODAY]
        challenge_id = assignment[const.DATA_ASSIGNMENT_CHALLENGE_IDS][0]
        expected = assignment[const.DATA_ASSIGNMENT_SNAPSHOT][challenge_id][
            const.DATA_SNAPSHOT_POINTS
        ]

        # Editing the item later does not change today's reward
        assert await coordinator.async_dispatch(
            act.LibraryItemEdit(id=challenge_id, patch={const.DATA_LIBRARY_POINTS: 500})
        )
        result = await coordinator.award_manager.async_award_challenge(challenge_id)

        assert result.points == expected
        assert (
            coordinator.data[const.DATA_PROGRESS][TODAY][const.DATA_SUMMARY_CHALLENGES_DONE] == 1
        )
        again = await coordinator.award_manager.async_award_challenge(challenge_id)
        assert again.reason == const.REASON_ALREADY_DONE

    async def test_unassigned_challenge(self, coordinator: QuestLogCoordinator) -> None:
        result = await coordinator.award_manager.async_award_challenge("lib_missing")
        assert result.reason == const.REASON_NOT_ASSIGNED_TODAY


class TestBossAwards:
    """Test weekly boss ticks."""

    async def test_tick_until_goal_complete(self, coordinator: QuestLogCoordinator) -> None:
        goal = coordinator.data[const.DATA_WEEKLY_BOSS][const.DATA_BOSS_GOALS][0]
        goal_id = goal[const.DATA_BOSS_GOAL_ID]
        target = goal[const.DATA_BOSS_GOAL_TARGET]

        for _ in range(target):
            result = await coordinator.award_manager.async_award_boss_tick(goal_id)
            assert result.points == goal[const.DATA_BOSS_GOAL_POINTS_PER_TICK]

        refused = await coordinator.award_manager.async_award_boss_tick(goal_id)
        assert refused.reason == const.REASON_GOAL_COMPLETE
        tallies = {
            g[const.DATA_BOSS_GOAL_ID]: g[const.DATA_BOSS_GOAL_TALLY]
            for g in coordinator.boss_goals_with_tally()
        }
        assert tallies[goal_id] == target

    async def test_boss_completed(self, coordinator: QuestLogCoordinator) -> None:
        goals = coordinator.data[const.DATA_WEEKLY_BOSS][const.DATA_BOSS_GOALS]
        assert goals
        for goal in goals:
            for _ in range(goal[const.DATA_BOSS_GOAL_TARGET]):
                assert (
                    await coordinator.award_manager.async_award_boss_tick(
                        goal[const.DATA_BOSS_GOAL_ID]
                    )
                ).ok
        assert coordinator.data[const.DATA_WEEKLY_BOSS][const.DATA_BOSS_COMPLETED] is True

    async def test_reroll_penalty(self, coordinator: QuestLogCoordinator) -> None:
        assert await coordinator.day_manager.async_reroll_boss()
        boss = coordinator.data[const.DATA_WEEKLY_BOSS]
        assert boss[const.DATA_BOSS_REROLLS] == 1
        goal = boss[const.DATA_BOSS_GOALS][0]

        result = await coordinator.award_manager.async_award_boss_tick(
            goal[const.DATA_BOSS_GOAL_ID]
        )
        assert result.points == AwardEngine.boss_tick_base(
            goal[const.DATA_BOSS_GOAL_POINTS_PER_TICK], 1
        )

    async def test_unknown_goal(self, coordinator: QuestLogCoordinator) -> None:
        result = await coordinator.award_manager.async_award_boss_tick("bg_missing")
        assert result.reason == const.REASON_NOT_FOUND


# =============================================================================
# TEST: COINS AND POWER HOUR
# =============================================================================


class TestSpending:
    """Test purchases and Power Hour."""

    async def test_spend_coins(self, coordinator: QuestLogCoordinator) -> None:
        await _give_coins(coordinator, 5)
        manager = coordinator.award_manager

        assert await manager.async_spend_coins(3, "Movie night") == AwardResult(
            ok=True, coins=-3
        )
        assert coordinator.coins == 2
        (purchase,) = _entries(coordinator, const.LEDGER_TYPE_PURCHASE)
        assert purchase[const.DATA_LEDGER_SUBJECT_LABEL] == "Movie night"

        assert (await manager.async_spend_coins(0, "Nothing")).reason == const.REASON_INVALID_AMOUNT
        assert coordinator.coins == 2

    async def test_overspend_refused_with_action_id_released(
        self, coordinator: QuestLogCoordinator
    ) -> None:
        await _give_coins(coordinator, 2)
        manager = coordinator.award_manager
        ledger_before = list(coordinator.data[const.DATA_LEDGER])

        refused = await manager.async_spend_coins(5, "Bike", action_id="buy-1")
        assert refused == AwardResult(ok=False, reason=const.REASON_INSUFFICIENT_COINS)
        assert coordinator.data[const.DATA_LEDGER] == ledger_before

        await _give_coins(coordinator, 3)
        assert await manager.async_spend_coins(5, "Bike", action_id="buy-1") == AwardResult(
            ok=True, coins=-5
        )
        assert coordinator.coins == 0

    async def test_power_hour(self, coordinator: QuestLogCoordinator, freezer: Any) -> None:
        await _give_coins(coordinator, 5)
        manager = coordinator.award_manager

        started = await manager.async_start_power_hour()
        assert started == AwardResult(ok=True, coins=-1)
        assert coordinator.coins == 4
        ends_at = coordinator.data[const.DATA_TODAY][const.DATA_TODAY_POWER_HOUR_ENDS_AT]
        assert ends_at is not None

        again = await manager.async_start_power_hour()
        assert again.reason == const.REASON_POWER_HOUR_ACTIVE

        boosted = await manager.async_award_habit("h_stretch")
        assert boosted.points == 15

        freezer.tick(timedelta(minutes=59))
        await coordinator.day_manager.async_heartbeat()
        assert coordinator.data[const.DATA_TODAY][const.DATA_TODAY_POWER_HOUR_ENDS_AT] == ends_at

        freezer.tick(timedelta(minutes=2))
        await coordinator.day_manager.async_heartbeat()
        assert coordinator.data[const.DATA_TODAY][const.DATA_TODAY_POWER_HOUR_ENDS_AT] is None

    async def test_power_hour_needs_a_coin(self, coordinator: QuestLogCoordinator) -> None:
        result = await coordinator.award_manager.async_start_power_hour()
        assert result.reason == const.REASON_INSUFFICIENT_COINS
        assert coordinator.data[const.DATA_TODAY][const.DATA_TODAY_POWER_HOUR_ENDS_AT] is None

    async def test_undo_of_non_award_type(self, coordinator: QuestLogCoordinator) -> None:
        result = await coordinator.award_manager.async_undo_last(
            const.LEDGER_TYPE_MINT, const.LEDGER_SUBJECT_COINS
        )
        assert result.reason == const.REASON_NOTHING_TO_UNDO


# =============================================================================
# TEST: PUBLISHING
# =============================================================================


async def test_award_publishes_once(hass, coordinator: QuestLogCoordinator) -> None:
    """A committed award notifies subscribers once with its name."""
    calls: list[tuple[dict[str, Any], str]] = []

    @callback
    def listener(state: dict[str, Any], source: str) -> None:
        calls.append((state, source))

    unsubscribe = coordinator.async_subscribe(listener)
    await coordinator.award_manager.async_award_habit("h_stretch")
    await hass.async_block_till_done()
    unsubscribe()

    assert len(calls) == 1
    state, source = calls[0]
    assert source == const.SERVICE_AWARD_HABIT
    assert state[const.DATA_TODAY][const.DATA_TODAY_POINTS_RUNTIME] == 10
