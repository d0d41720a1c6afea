"""Schema migration for stored and imported QuestLog snapshots.

migrate() turns anything (None, a partial dict, a current snapshot, or a
camelCase snapshot exported by the browser edition of QuestLog) into a fully
populated snapshot stamped with the current schema version.

It is pure and idempotent: migrate(migrate(x)) == migrate(x). It never raises
on malformed content; entities that cannot be salvaged are dropped with a
warning.
"""

from __future__ import annotations

import copy
from typing import Any

from . import const, data_builders as db
from .engines.ledger_engine import LedgerEngine
from .type_defs import QuestLogData
from .utils import dt_utils

# camelCase field -> snake_case storage key, applied recursively
LEGACY_KEY_MAP: dict[str, str] = {
    # Top level
    "taskRules": const.DATA_TASK_RULES,
    "taskInstances": const.DATA_TASK_INSTANCES,
    "dailyAssignments": const.DATA_DAILY_ASSIGNMENTS,
    "weeklyBoss": const.DATA_WEEKLY_BOSS,
    "coinsTotal": const.DATA_COINS_TOTAL,
    "schemaVersion": const.DATA_META_SCHEMA_VERSION,
    # Profile / settings
    "bestStreak": const.DATA_PROFILE_BEST_STREAK,
    "dailyGoal": const.DATA_SETTINGS_DAILY_GOAL,
    "pointsPerCoin": const.DATA_SETTINGS_POINTS_PER_COIN,
    "dailyChallengesCount": const.DATA_SETTINGS_DAILY_CHALLENGES_COUNT,
    "challengeMultiplier": const.DATA_SETTINGS_CHALLENGE_MULTIPLIER,
    "bossTasksPerWeek": const.DATA_SETTINGS_BOSS_TASKS_PER_WEEK,
    "bossTimesMin": const.DATA_SETTINGS_BOSS_TIMES_MIN,
    "bossTimesMax": const.DATA_SETTINGS_BOSS_TIMES_MAX,
    # Today
    "pointsRuntime": const.DATA_TODAY_POINTS_RUNTIME,
    "coinsUnminted": const.DATA_TODAY_COINS_UNMINTED,
    "powerHourEndsAt": const.DATA_TODAY_POWER_HOUR_ENDS_AT,
    "habitsStatus": const.DATA_TODAY_HABITS_STATUS,
    # Ledger entries
    "timestamp": const.DATA_LEDGER_TS,
    "subjectId": const.DATA_LEDGER_SUBJECT_ID,
    "subjectLabel": const.DATA_LEDGER_SUBJECT_LABEL,
    "pointsDelta": const.DATA_LEDGER_POINTS_DELTA,
    "coinsDelta": const.DATA_LEDGER_COINS_DELTA,
    # Day summaries
    "coinsEarned": const.DATA_SUMMARY_COINS_EARNED,
    "tasksDone": const.DATA_SUMMARY_TASKS_DONE,
    "habitsDone": const.DATA_SUMMARY_HABITS_DONE,
    "challengesDone": const.DATA_SUMMARY_CHALLENGES_DONE,
    "bossTicks": const.DATA_SUMMARY_BOSS_TICKS,
    "missedTodos": const.DATA_SUMMARY_MISSED_TODOS,
    # Entities
    "targetPerDay": const.DATA_HABIT_TARGET_PER_DAY,
    "pointsOnComplete": const.DATA_HABIT_POINTS_ON_COMPLETE,
    "byWeekday": const.DATA_HABIT_BY_WEEKDAY,
    "ruleId": const.DATA_TASK_INSTANCE_RULE_ID,
    "cooldownHours": const.DATA_LIBRARY_COOLDOWN_HOURS,
    "maxPerDay": const.DATA_LIBRARY_MAX_PER_DAY,
    "allowedWeekdays": const.DATA_LIBRARY_ALLOWED_WEEKDAYS,
    "includeInChallenges": const.DATA_LIBRARY_INCLUDE_IN_CHALLENGES,
    "includeInBoss": const.DATA_LIBRARY_INCLUDE_IN_BOSS,
    "lastDoneAt": const.DATA_LIBRARY_LAST_DONE_AT,
    # Content
    "challengeIds": const.DATA_ASSIGNMENT_CHALLENGE_IDS,
    "weekStartDay": const.DATA_BOSS_WEEK_START_DAY,
    "linkedTaskId": const.DATA_BOSS_GOAL_LINKED_TASK_ID,
    "pointsPerTick": const.DATA_BOSS_GOAL_POINTS_PER_TICK,
}


# ==============================================================================
# Entry Point
# ==============================================================================


def migrate(raw: Any, today: str | None = None) -> QuestLogData:
    """Return a complete, default-filled snapshot from any input.

    Args:
        raw: Stored or imported data; None and non-dicts yield defaults
        today: Current day key (defaults to the local day)

    Returns:
        Complete snapshot with meta.schema_version stamped
    """
    today = today or dt_utils.today_key()
    if not isinstance(raw, dict):
        if raw is not None:
            const.LOGGER.warning(
                "WARNING: Ignoring non-object state of type %s", type(raw).__name__
            )
        return default_state(today)

    source = _rename_legacy_keys(copy.deepcopy(raw))
    previous_version = _get_dict(source, const.DATA_META).get(
        const.DATA_META_SCHEMA_VERSION
    )

    settings = db.build_settings({}, _get_dict(source, const.DATA_SETTINGS))  # type: ignore[arg-type]
    profile = _get_dict(source, const.DATA_PROFILE)

    data: QuestLogData = {
        const.DATA_META: {const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION},
        const.DATA_PROFILE: {
            const.DATA_PROFILE_COINS: _to_int(profile.get(const.DATA_PROFILE_COINS)),
            const.DATA_PROFILE_BEST_STREAK: max(
                0, _to_int(profile.get(const.DATA_PROFILE_BEST_STREAK))
            ),
        },
        const.DATA_SETTINGS: settings,
        const.DATA_TODAY: _migrate_today(
            _get_dict(source, const.DATA_TODAY),
            today,
            settings[const.DATA_SETTINGS_POINTS_PER_COIN],
        ),
        const.DATA_LEDGER: _migrate_ledger(source.get(const.DATA_LEDGER)),
        const.DATA_PROGRESS: _migrate_progress(_get_dict(source, const.DATA_PROGRESS)),
        const.DATA_STREAK: {
            const.DATA_STREAK_CURRENT: max(
                0,
                _to_int(
                    _get_dict(source, const.DATA_STREAK).get(const.DATA_STREAK_CURRENT)
                ),
            )
        },
        const.DATA_COINS_TOTAL: _to_int(source.get(const.DATA_COINS_TOTAL)),
        const.DATA_HABITS: {},
        const.DATA_TASK_RULES: {},
        const.DATA_TASK_INSTANCES: {},
        const.DATA_LIBRARY: {},
        const.DATA_DAILY_ASSIGNMENTS: _migrate_assignments(
            _get_dict(source, const.DATA_DAILY_ASSIGNMENTS)
        ),
        const.DATA_WEEKLY_BOSS: migrate_boss(source.get(const.DATA_WEEKLY_BOSS), today),
    }

    for collection in const.ENTITY_COLLECTIONS:
        data[collection] = _migrate_collection(  # type: ignore[literal-required]
            collection, source.get(collection), today
        )

    if previous_version != const.SCHEMA_VERSION:
        const.LOGGER.info(
            "INFO: Migrated state from schema %s to %s",
            previous_version,
            const.SCHEMA_VERSION,
        )
    return data


def default_state(today: str) -> QuestLogData:
    """A fresh first-run snapshot."""
    return {
        const.DATA_META: {const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION},
        const.DATA_PROFILE: {
            const.DATA_PROFILE_COINS: 0,
            const.DATA_PROFILE_BEST_STREAK: 0,
        },
        const.DATA_SETTINGS: db.build_settings({}),
        const.DATA_TODAY: _migrate_today({}, today, const.DEFAULT_POINTS_PER_COIN),
        const.DATA_LEDGER: [],
        const.DATA_PROGRESS: {},
        const.DATA_STREAK: {const.DATA_STREAK_CURRENT: 0},
        const.DATA_COINS_TOTAL: 0,
        const.DATA_HABITS: {},
        const.DATA_TASK_RULES: {},
        const.DATA_TASK_INSTANCES: {},
        const.DATA_LIBRARY: {},
        const.DATA_DAILY_ASSIGNMENTS: {},
        const.DATA_WEEKLY_BOSS: default_boss(today),
    }


def default_boss(today: str) -> dict[str, Any]:
    """Empty boss for the week containing today."""
    return {
        const.DATA_BOSS_WEEK_START_DAY: dt_utils.week_start_of(today),
        const.DATA_BOSS_GOALS: [],
        const.DATA_BOSS_REROLLS: 0,
        const.DATA_BOSS_COMPLETED: False,
    }


# ==============================================================================
# Helpers
# ==============================================================================


def _rename_legacy_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            LEGACY_KEY_MAP.get(key, key): _rename_legacy_keys(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_rename_legacy_keys(item) for item in value]
    return value


def _get_dict(source: dict[str, Any], key: str) -> dict[str, Any]:
    value = source.get(key)
    return value if isinstance(value, dict) else {}


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _migrate_today(
    raw: dict[str, Any], today: str, points_per_coin: int
) -> dict[str, Any]:
    day = raw.get(const.DATA_TODAY_DAY)
    ends_at = raw.get(const.DATA_TODAY_POWER_HOUR_ENDS_AT)
    habits_status: dict[str, Any] = {}
    raw_status = raw.get(const.DATA_TODAY_HABITS_STATUS)
    if isinstance(raw_status, dict):
        for habit_id, status in raw_status.items():
            if not isinstance(status, dict):
                continue
            habits_status[str(habit_id)] = {
                const.DATA_HABIT_STATUS_TALLY: max(
                    0, _to_int(status.get(const.DATA_HABIT_STATUS_TALLY))
                ),
                const.DATA_HABIT_STATUS_DONE: bool(status.get(const.DATA_HABIT_STATUS_DONE)),
            }
    return {
        const.DATA_TODAY_DAY: day if dt_utils.is_valid_day_key(day) else today,
        const.DATA_TODAY_POINTS_RUNTIME: max(
            0, _to_int(raw.get(const.DATA_TODAY_POINTS_RUNTIME))
        ),
        const.DATA_TODAY_COINS_UNMINTED: min(
            max(0, _to_int(raw.get(const.DATA_TODAY_COINS_UNMINTED))),
            points_per_coin - 1,
        ),
        const.DATA_TODAY_POWER_HOUR_ENDS_AT: _to_int(ends_at) if ends_at else None,
        const.DATA_TODAY_HABITS_STATUS: habits_status,
    }


def _migrate_ledger(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    ledger: list[dict[str, Any]] = []
    dropped = 0
    for entry in raw:
        if (
            not isinstance(entry, dict)
            or not isinstance(entry.get(const.DATA_LEDGER_TYPE), str)
            or entry[const.DATA_LEDGER_TYPE] not in const.LEDGER_TYPES
            or not dt_utils.is_valid_day_key(entry.get(const.DATA_LEDGER_DAY))
        ):
            dropped += 1
            continue
        normalized = LedgerEngine.create_entry(
            entry[const.DATA_LEDGER_TYPE],
            str(entry.get(const.DATA_LEDGER_SUBJECT_ID) or ""),
            str(entry.get(const.DATA_LEDGER_SUBJECT_LABEL) or ""),
            day=entry[const.DATA_LEDGER_DAY],
            ts=_to_int(entry.get(const.DATA_LEDGER_TS)),
            points_delta=_to_int(entry.get(const.DATA_LEDGER_POINTS_DELTA)),
            coins_delta=_to_int(entry.get(const.DATA_LEDGER_COINS_DELTA)),
        )
        if entry.get(const.DATA_LEDGER_ID):
            normalized[const.DATA_LEDGER_ID] = str(entry[const.DATA_LEDGER_ID])
        ledger.append(normalized)  # type: ignore[arg-type]
    if dropped:
        const.LOGGER.warning("WARNING: Dropped %s malformed ledger entries", dropped)
    return ledger


def _migrate_progress(raw: dict[str, Any]) -> dict[str, Any]:
    progress: dict[str, Any] = {}
    for day, summary in raw.items():
        if not dt_utils.is_valid_day_key(day) or not isinstance(summary, dict):
            continue
        clean = LedgerEngine.empty_summary()
        for key in clean:
            clean[key] = _to_int(summary.get(key))  # type: ignore[literal-required]
        progress[day] = clean
    return progress


def _migrate_collection(collection: str, raw: Any, today: str) -> dict[str, Any]:
    """Normalize an entity collection into {id: entity}.

    Accepts the legacy list shape as well as the stored dict shape.
    """
    if isinstance(raw, dict):
        items = list(raw.values())
    elif isinstance(raw, list):
        items = raw
    else:
        return {}

    builder = db.BUILDERS_BY_COLLECTION[collection]
    result: dict[str, Any] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            if collection == const.DATA_TASK_INSTANCES:
                entity = builder({}, item, default_day=today)
            else:
                entity = builder({}, item)
        except db.EntityValidationError as err:
            const.LOGGER.warning(
                "WARNING: Dropping invalid %s entity %s: %s",
                collection,
                item.get(const.DATA_ENTITY_ID),
                err,
            )
            continue
        result[entity[const.DATA_ENTITY_ID]] = entity
    return result


def _migrate_assignments(raw: dict[str, Any]) -> dict[str, Any]:
    assignments: dict[str, Any] = {}
    for day, assignment in raw.items():
        if not dt_utils.is_valid_day_key(day) or not isinstance(assignment, dict):
            continue
        ids = assignment.get(const.DATA_ASSIGNMENT_CHALLENGE_IDS)
        snapshot = assignment.get(const.DATA_ASSIGNMENT_SNAPSHOT)
        clean_snapshot: dict[str, Any] = {}
        if isinstance(snapshot, dict):
            for item_id, snap in snapshot.items():
                if not isinstance(snap, dict):
                    continue
                clean_snapshot[str(item_id)] = {
                    const.DATA_SNAPSHOT_TITLE: str(snap.get(const.DATA_SNAPSHOT_TITLE) or ""),
                    const.DATA_SNAPSHOT_POINTS: _to_int(snap.get(const.DATA_SNAPSHOT_POINTS)),
                }
        assignments[day] = {
            const.DATA_ASSIGNMENT_CHALLENGE_IDS: [str(i) for i in ids]
            if isinstance(ids, list)
            else [],
            const.DATA_ASSIGNMENT_SNAPSHOT: clean_snapshot,
        }
    return assignments


def migrate_boss(raw: Any, today: str) -> dict[str, Any]:
    """Normalize a stored boss; anything unusable becomes an empty boss for this week."""
    if not isinstance(raw, dict) or not dt_utils.is_valid_day_key(
        raw.get(const.DATA_BOSS_WEEK_START_DAY)
    ):
        return default_boss(today)

    raw_goals = raw.get(const.DATA_BOSS_GOALS)
    goals = []
    for goal in raw_goals if isinstance(raw_goals, list) else []:
        if not isinstance(goal, dict) or not goal.get(const.DATA_BOSS_GOAL_ID):
            continue
        goals.append(
            {
                const.DATA_BOSS_GOAL_ID: str(goal[const.DATA_BOSS_GOAL_ID]),
                const.DATA_BOSS_GOAL_LABEL: str(goal.get(const.DATA_BOSS_GOAL_LABEL) or ""),
                const.DATA_BOSS_GOAL_TARGET: max(
                    1, _to_int(goal.get(const.DATA_BOSS_GOAL_TARGET), 1)
                ),
                const.DATA_BOSS_GOAL_LINKED_TASK_ID: str(
                    goal.get(const.DATA_BOSS_GOAL_LINKED_TASK_ID) or ""
                ),
                const.DATA_BOSS_GOAL_POINTS_PER_TICK: _to_int(
                    goal.get(const.DATA_BOSS_GOAL_POINTS_PER_TICK)
                ),
            }
        )
    return {
        const.DATA_BOSS_WEEK_START_DAY: raw[const.DATA_BOSS_WEEK_START_DAY],
        const.DATA_BOSS_GOALS: goals,
        const.DATA_BOSS_REROLLS: max(0, _to_int(raw.get(const.DATA_BOSS_REROLLS))),
        const.DATA_BOSS_COMPLETED: bool(raw.get(const.DATA_BOSS_COMPLETED)),
    }
