"""Boss Engine - Weekly boss generation, reroll and tally.

ARCHITECTURE: Pure logic, NO Home Assistant dependencies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..utils import dt_utils
from ..utils.math_utils import clamp, clamp_int
from ..utils.seed_utils import Mulberry32, hash_string, seeded_shuffle

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import BossGoal, LedgerEntry, LibraryItemData, WeeklyBoss


class BossEngine:
    """Stateless weekly boss logic."""

    # ==========================================================================
    # Generation
    # ==========================================================================

    @staticmethod
    def allowed_days_in_week(item: LibraryItemData, week_start: str) -> int:
        """Count the days of the week starting at week_start the item may be used."""
        allowed = item.get(const.DATA_LIBRARY_ALLOWED_WEEKDAYS)
        if not allowed:
            return dt_utils.DAYS_IN_WEEK
        return sum(
            1
            for day in dt_utils.week_days(week_start)
            if dt_utils.weekday_index(day) in allowed
        )

    @staticmethod
    def seed_for(week_start: str, rerolls: int = 0) -> int:
        """Seed for a week; rerolls are mixed in so each reroll differs."""
        key = f"{const.SEED_PREFIX_BOSS}{week_start}"
        if rerolls:
            key = f"{key}:R{rerolls}"
        return hash_string(key)

    @staticmethod
    def generate(
        library: Mapping[str, LibraryItemData],
        settings: Mapping[str, Any],
        week_start: str,
        rerolls: int = 0,
    ) -> WeeklyBoss:
        """Generate a weekly boss.

        Targets come from a second PRNG stream (seed XOR 0x9E3779B9) so the
        choice of items and the choice of targets stay independent.

        Args:
            library: Library items keyed by id
            settings: Current settings
            week_start: Monday key of the target week
            rerolls: Reroll count recorded on the result and mixed into the seed

        Returns:
            New WeeklyBoss
        """
        goals_count = clamp_int(
            settings.get(const.DATA_SETTINGS_BOSS_TASKS_PER_WEEK),
            const.MIN_BOSS_TASKS_PER_WEEK,
            const.MAX_BOSS_TASKS_PER_WEEK,
            const.DEFAULT_BOSS_TASKS_PER_WEEK,
        )
        min_times = clamp_int(
            settings.get(const.DATA_SETTINGS_BOSS_TIMES_MIN),
            const.MIN_BOSS_TIMES,
            const.MAX_BOSS_TIMES,
            const.DEFAULT_BOSS_TIMES_MIN,
        )
        max_times = clamp_int(
            settings.get(const.DATA_SETTINGS_BOSS_TIMES_MAX),
            min_times,
            const.MAX_BOSS_TIMES,
            const.DEFAULT_BOSS_TIMES_MAX,
        )

        pool = sorted(
            (
                item
                for item in library.values()
                if item.get(const.DATA_ENTITY_ACTIVE, True)
                and item.get(const.DATA_LIBRARY_INCLUDE_IN_BOSS) is not False
                and BossEngine.allowed_days_in_week(item, week_start) > 0
            ),
            key=lambda item: item[const.DATA_ENTITY_ID],
        )

        seed = BossEngine.seed_for(week_start, rerolls)
        shuffled = seeded_shuffle(pool, seed)
        rng = Mulberry32(seed ^ const.SEED_BOSS_TARGET_STREAM_XOR)

        goals: list[BossGoal] = []
        for item in shuffled[:goals_count]:
            allowed = BossEngine.allowed_days_in_week(item, week_start)
            target_raw = rng.randint(min_times, max_times)
            goals.append(
                {
                    const.DATA_BOSS_GOAL_ID: f"{const.BOSS_GOAL_ID_PREFIX}{item[const.DATA_ENTITY_ID]}",
                    const.DATA_BOSS_GOAL_LABEL: item.get(const.DATA_ENTITY_TITLE, ""),
                    const.DATA_BOSS_GOAL_TARGET: int(clamp(target_raw, 1, allowed)),
                    const.DATA_BOSS_GOAL_LINKED_TASK_ID: item[const.DATA_ENTITY_ID],
                    const.DATA_BOSS_GOAL_POINTS_PER_TICK: int(
                        item.get(const.DATA_LIBRARY_POINTS) or 0
                    ),
                }
            )

        return {
            const.DATA_BOSS_WEEK_START_DAY: week_start,
            const.DATA_BOSS_GOALS: goals,
            const.DATA_BOSS_REROLLS: int(rerolls),
            const.DATA_BOSS_COMPLETED: False,
        }

    @staticmethod
    def reroll(
        library: Mapping[str, LibraryItemData],
        settings: Mapping[str, Any],
        current: WeeklyBoss,
    ) -> WeeklyBoss:
        """Regenerate goals for the same week with rerolls incremented."""
        rerolls = int(current.get(const.DATA_BOSS_REROLLS) or 0) + 1
        return BossEngine.generate(
            library, settings, current[const.DATA_BOSS_WEEK_START_DAY], rerolls
        )

    # ==========================================================================
    # Tally
    # ==========================================================================

    @staticmethod
    def compute_tallies(
        ledger: Iterable[LedgerEntry], boss: WeeklyBoss
    ) -> dict[str, int]:
        """Recompute every goal's tally from this week's boss entries.

        +1 per award, -1 per undo, floored at 0.
        """
        week = set(dt_utils.week_days(boss[const.DATA_BOSS_WEEK_START_DAY]))
        tallies = {
            goal[const.DATA_BOSS_GOAL_ID]: 0 for goal in boss.get(const.DATA_BOSS_GOALS, [])
        }
        for entry in ledger:
            if entry.get(const.DATA_LEDGER_TYPE) != const.LEDGER_TYPE_BOSS:
                continue
            if entry.get(const.DATA_LEDGER_DAY) not in week:
                continue
            goal_id = entry.get(const.DATA_LEDGER_SUBJECT_ID)
            if goal_id not in tallies:
                continue
            points = int(entry.get(const.DATA_LEDGER_POINTS_DELTA) or 0)
            if points > 0:
                tallies[goal_id] += 1
            elif points < 0:
                tallies[goal_id] = max(0, tallies[goal_id] - 1)
        return tallies

    @staticmethod
    def is_completed(boss: WeeklyBoss, tallies: Mapping[str, int]) -> bool:
        """All goals at target, and at least one goal."""
        goals = boss.get(const.DATA_BOSS_GOALS, [])
        if not goals:
            return False
        return all(
            tallies.get(goal[const.DATA_BOSS_GOAL_ID], 0)
            >= int(goal.get(const.DATA_BOSS_GOAL_TARGET) or 0)
            for goal in goals
        )
