"""Ledger Engine - Pure logic for the append-only event ledger.

This engine provides stateless, pure Python functions for:
- Ledger entry creation
- Rebuilding per-day summaries, coin totals and streaks from the ledger
- Reconstructing habit completion for any day from the ledger

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data. The ledger is
the single source of truth; everything returned by rebuild_from_ledger() is a
cache that the coordinator writes back into state.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
import uuid

from .. import const
from ..utils import dt_utils

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..type_defs import DaySummary, HabitData, LedgerEntry


@dataclass
class RebuildResult:
    """Aggregates derived from a full ledger scan."""

    progress: dict[str, DaySummary] = field(default_factory=dict)
    coins_total: int = 0
    streak_current: int = 0
    best_streak: int = 0


class LedgerEngine:
    """Pure logic engine for ledger entries and derived aggregates.

    All methods are static - no instance state.
    """

    # ==========================================================================
    # Entry Creation
    # ==========================================================================

    @staticmethod
    def create_entry(
        entry_type: str,
        subject_id: str,
        subject_label: str,
        *,
        day: str,
        ts: int,
        points_delta: float = 0,
        coins_delta: float = 0,
    ) -> LedgerEntry:
        """Create a new immutable ledger entry.

        Deltas are truncated toward zero so the ledger only ever holds
        integers.

        Args:
            entry_type: One of const.LEDGER_TYPES
            subject_id: Task instance, habit, item, goal or "coins"
            subject_label: Human-readable label frozen into the entry
            day: Day key the entry belongs to
            ts: Epoch milliseconds
            points_delta: Point change (negative for undo)
            coins_delta: Coin change

        Returns:
            New LedgerEntry
        """
        return {
            const.DATA_LEDGER_ID: str(uuid.uuid4()),
            const.DATA_LEDGER_TS: int(ts),
            const.DATA_LEDGER_DAY: day,
            const.DATA_LEDGER_TYPE: entry_type,  # type: ignore[typeddict-item]
            const.DATA_LEDGER_SUBJECT_ID: subject_id,
            const.DATA_LEDGER_SUBJECT_LABEL: subject_label,
            const.DATA_LEDGER_POINTS_DELTA: int(points_delta),
            const.DATA_LEDGER_COINS_DELTA: int(coins_delta),
        }

    @staticmethod
    def empty_summary() -> DaySummary:
        """Return a zeroed day summary."""
        return {
            const.DATA_SUMMARY_POINTS: 0,
            const.DATA_SUMMARY_COINS_EARNED: 0,
            const.DATA_SUMMARY_TASKS_DONE: 0,
            const.DATA_SUMMARY_HABITS_DONE: 0,
            const.DATA_SUMMARY_CHALLENGES_DONE: 0,
            const.DATA_SUMMARY_BOSS_TICKS: 0,
            const.DATA_SUMMARY_MISSED_TODOS: 0,
        }

    # ==========================================================================
    # Rebuild
    # ==========================================================================

    @staticmethod
    def rebuild_from_ledger(
        habits: Iterable[HabitData],
        ledger: Iterable[LedgerEntry],
        today: str,
        previous_best: int = 0,
        previous_progress: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> RebuildResult:
        """Recompute every ledger-derived aggregate.

        Pure: the output depends only on the arguments. Per-type counters
        (tasks/habits/challenges/boss ticks) count only entries with a positive
        points delta; undo entries reduce points but never counters.
        missed_todos is not derivable from the ledger, so it is carried over
        from previous_progress.

        Args:
            habits: Habit definitions used to decide which days are scheduled
            ledger: Entries in append order
            today: Day key the streak is evaluated up to
            previous_best: Stored best streak (best never decreases)
            previous_progress: Last published progress, for missed_todos

        Returns:
            RebuildResult with progress, coins_total, streak and best streak
        """
        progress: dict[str, DaySummary] = {}
        coins_total = 0
        habit_net: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

        for entry in ledger:
            day = entry.get(const.DATA_LEDGER_DAY)
            if not day:
                continue
            summary = progress.get(day)
            if summary is None:
                summary = progress[day] = LedgerEngine.empty_summary()

            points = int(entry.get(const.DATA_LEDGER_POINTS_DELTA) or 0)
            coins = int(entry.get(const.DATA_LEDGER_COINS_DELTA) or 0)
            entry_type = entry.get(const.DATA_LEDGER_TYPE)

            summary[const.DATA_SUMMARY_POINTS] += points  # type: ignore[literal-required]
            coins_total += coins
            if coins > 0:
                summary[const.DATA_SUMMARY_COINS_EARNED] += coins  # type: ignore[literal-required]

            counter_key = const.SUMMARY_COUNTER_BY_TYPE.get(entry_type)  # type: ignore[arg-type]
            if counter_key and points > 0:
                summary[counter_key] += 1  # type: ignore[literal-required]

            if entry_type == const.LEDGER_TYPE_HABIT and points != 0:
                subject = entry.get(const.DATA_LEDGER_SUBJECT_ID, "")
                habit_net[day][subject] += 1 if points > 0 else -1

        if previous_progress:
            for day, old in previous_progress.items():
                missed = int(old.get(const.DATA_SUMMARY_MISSED_TODOS) or 0)
                if missed:
                    summary = progress.setdefault(day, LedgerEngine.empty_summary())
                    summary[const.DATA_SUMMARY_MISSED_TODOS] = missed  # type: ignore[literal-required]

        current, best = LedgerEngine.compute_streak(habits, habit_net, today)
        return RebuildResult(
            progress=progress,
            coins_total=coins_total,
            streak_current=current,
            best_streak=max(int(previous_best or 0), best),
        )

    @staticmethod
    def compute_streak(
        habits: Iterable[HabitData],
        habit_net: Mapping[str, Mapping[str, int]],
        today: str,
    ) -> tuple[int, int]:
        """Walk forward through the streak window tracking runs.

        A day with no scheduled habits is neutral. A scheduled day is complete
        when every scheduled habit has a net positive completion that day.
        Today, while still incomplete, is pending: it neither extends nor
        breaks the run.

        Returns:
            (current, best) run lengths within the window
        """
        active = [h for h in habits if h.get(const.DATA_ENTITY_ACTIVE, True)]
        if not active or not habit_net:
            return 0, 0

        start = dt_utils.add_days(today, -(const.STREAK_HORIZON_DAYS - 1))
        first_day = min(habit_net)
        if first_day > start:
            start = first_day

        run = 0
        best = 0
        cursor = start
        while cursor <= today:
            weekday = dt_utils.weekday_index(cursor)
            scheduled = [
                h[const.DATA_ENTITY_ID]
                for h in active
                if LedgerEngine.is_scheduled(h.get(const.DATA_HABIT_BY_WEEKDAY), weekday)
            ]
            if scheduled:
                done_today = habit_net.get(cursor, {})
                complete = all(done_today.get(hid, 0) > 0 for hid in scheduled)
                if complete:
                    run += 1
                    best = max(best, run)
                elif cursor != today:
                    run = 0
            cursor = dt_utils.add_days(cursor, 1)
        return run, best

    @staticmethod
    def is_scheduled(by_weekday: Iterable[int] | None, weekday: int) -> bool:
        """True if a weekday filter allows the given weekday (empty = every day)."""
        if not by_weekday:
            return True
        return weekday in by_weekday

    @staticmethod
    def set_missed(
        progress: dict[str, DaySummary], day: str, count: int
    ) -> dict[str, DaySummary]:
        """Record the missed todo count for a finalized day."""
        summary = progress.setdefault(day, LedgerEngine.empty_summary())
        summary[const.DATA_SUMMARY_MISSED_TODOS] = int(count)  # type: ignore[literal-required]
        return progress

    # ==========================================================================
    # Lookups
    # ==========================================================================

    @staticmethod
    def habit_done_on(ledger: Iterable[LedgerEntry], habit_id: str, day: str) -> bool:
        """Reconstruct whether a habit was completed on a day from the ledger."""
        net = 0
        for entry in ledger:
            if (
                entry.get(const.DATA_LEDGER_DAY) == day
                and entry.get(const.DATA_LEDGER_TYPE) == const.LEDGER_TYPE_HABIT
                and entry.get(const.DATA_LEDGER_SUBJECT_ID) == habit_id
            ):
                points = int(entry.get(const.DATA_LEDGER_POINTS_DELTA) or 0)
                if points > 0:
                    net += 1
                elif points < 0:
                    net -= 1
        return net > 0
