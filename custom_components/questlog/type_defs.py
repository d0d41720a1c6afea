"""Type definitions for QuestLog data structures.

HYBRID APPROACH (TypedDict + dict[str, Any])
============================================

1. **TypedDict for STATIC structures** (fixed keys known at design time):
   ledger entries, entities, settings, today runtime, weekly boss.

2. **dict[str, Any] for DYNAMIC structures** (keys determined at runtime):
   progress keyed by day, daily assignments keyed by day, entity collections
   keyed by id.

IMPORTANT: This file must NOT import from coordinator.py or any module that
imports the coordinator. Only typing machinery is imported here.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime defaults and coercion live in
migration.py and data_builders.py.
"""

from typing import Any, Literal, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

DayKey = str  # Local calendar day "2025-03-10"
EpochMs = int  # Milliseconds since the epoch
EntityId = str  # UUID hex string

LedgerType = Literal[
    "task", "habit", "challenge", "boss", "library", "mint", "purchase"
]
HabitKind = Literal["binary", "counter"]


# =============================================================================
# Ledger
# =============================================================================


class LedgerEntry(TypedDict):
    """A single immutable event in the append-only ledger.

    Created by: LedgerEngine.create_entry()
    Stored in: QuestLogData["ledger"]
    """

    id: str
    ts: EpochMs
    day: DayKey
    type: LedgerType
    subject_id: str
    subject_label: str
    points_delta: int  # Negative means undo
    coins_delta: int


class DaySummary(TypedDict):
    """Derived per-day aggregates, recomputed from the ledger."""

    points: int
    coins_earned: int
    tasks_done: int
    habits_done: int
    challenges_done: int
    boss_ticks: int
    missed_todos: int  # Set at day finalization, carried across rebuilds


# =============================================================================
# Entities
# =============================================================================


class HabitData(TypedDict):
    """A tracked habit, binary (done/not done) or counter (N per day)."""

    id: EntityId
    title: str
    kind: HabitKind
    target_per_day: int
    points_on_complete: int
    by_weekday: list[int] | None  # 0=Sun..6=Sat; None = every day
    active: bool


class TaskRuleData(TypedDict):
    """Recurring task template."""

    id: EntityId
    title: str
    points: int
    by_weekday: list[int] | None
    active: bool


class TaskInstanceData(TypedDict):
    """A concrete task occurrence, generated from a rule or ad hoc."""

    id: EntityId
    title: str
    points: int
    day: DayKey
    rule_id: EntityId | None
    done: bool


class LibraryItemData(TypedDict):
    """A quick action that can be tapped for points."""

    id: EntityId
    title: str
    points: int
    cooldown_hours: float | None
    max_per_day: int | None
    allowed_weekdays: list[int] | None
    include_in_challenges: bool
    include_in_boss: bool
    pinned: bool
    active: bool
    last_done_at: EpochMs | None


# =============================================================================
# Content
# =============================================================================


class ChallengeSnapshot(TypedDict):
    """Reward frozen at assignment time."""

    title: str
    points: int


class DailyAssignment(TypedDict):
    """The challenges assigned for one day."""

    challenge_ids: list[EntityId]
    snapshot: dict[EntityId, ChallengeSnapshot]


class BossGoal(TypedDict):
    """One weekly boss goal. tally is attached at rebuild time, never stored."""

    id: str
    label: str
    target: int
    linked_task_id: EntityId
    points_per_tick: int
    tally: NotRequired[int]


class WeeklyBoss(TypedDict):
    """The current week's boss."""

    week_start_day: DayKey
    goals: list[BossGoal]
    rerolls: int
    completed: bool


# =============================================================================
# Singletons
# =============================================================================


class SettingsData(TypedDict):
    """User-tunable settings, always clamped into range."""

    daily_goal: int
    points_per_coin: int
    daily_challenges_count: int
    challenge_multiplier: float
    boss_tasks_per_week: int
    boss_times_min: int
    boss_times_max: int


class ProfileData(TypedDict):
    """Ledger-derived profile mirror."""

    coins: int
    best_streak: int


class HabitStatus(TypedDict):
    """Today-only live habit status."""

    tally: int
    done: bool


class TodayRuntime(TypedDict):
    """Mutable runtime for the current day."""

    day: DayKey
    points_runtime: int
    coins_unminted: int
    power_hour_ends_at: EpochMs | None
    habits_status: dict[EntityId, HabitStatus]


class MetaData(TypedDict):
    """Storage metadata."""

    schema_version: int


class StreakData(TypedDict):
    """Current streak."""

    current: int


class QuestLogData(TypedDict):
    """The full persisted snapshot."""

    meta: MetaData
    profile: ProfileData
    settings: SettingsData
    today: TodayRuntime
    ledger: list[LedgerEntry]
    progress: dict[DayKey, DaySummary]
    streak: StreakData
    coins_total: int
    habits: dict[EntityId, HabitData]
    task_rules: dict[EntityId, TaskRuleData]
    task_instances: dict[EntityId, TaskInstanceData]
    library: dict[EntityId, LibraryItemData]
    daily_assignments: dict[DayKey, DailyAssignment]
    weekly_boss: WeeklyBoss


# Dynamic structures
ProgressMap = dict[DayKey, dict[str, Any]]


__all__ = [
    "BossGoal",
    "ChallengeSnapshot",
    "DailyAssignment",
    "DayKey",
    "DaySummary",
    "EntityId",
    "EpochMs",
    "HabitData",
    "HabitKind",
    "HabitStatus",
    "LedgerEntry",
    "LedgerType",
    "LibraryItemData",
    "MetaData",
    "ProfileData",
    "ProgressMap",
    "QuestLogData",
    "SettingsData",
    "StreakData",
    "TaskInstanceData",
    "TaskRuleData",
    "TodayRuntime",
    "WeeklyBoss",
]
