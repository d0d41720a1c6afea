# File: const.py
"""Constants for the QuestLog integration.

This file centralizes storage keys, entity field names, defaults, limits,
service names and dispatcher signal suffixes for consistency across the
integration.
"""

import logging

# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
QUESTLOG_TITLE = "QuestLog"

# Integration Domain
DOMAIN = "questlog"

# Logger
LOGGER = logging.getLogger(__package__)

# QuestLog exposes no entity platforms; state is reached through services,
# diagnostics and the coordinator subscription.
PLATFORMS: list[str] = []

# Coordinator
COORDINATOR = "coordinator"
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORE = "store"
STORAGE_KEY = "questlog_data"
STORAGE_VERSION = 1

# Schema version stamped by migration.migrate()
SCHEMA_VERSION = 2

# Heartbeat (coordinator update interval)
HEARTBEAT_INTERVAL_SECONDS = 60

# Number of recently seen action ids kept for duplicate suppression
RECENT_ACTION_ID_LIMIT = 64

# ------------------------------------------------------------------------------------------------
# Top-Level Data Keys
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"

DATA_PROFILE = "profile"
DATA_SETTINGS = "settings"
DATA_TODAY = "today"
DATA_LEDGER = "ledger"
DATA_PROGRESS = "progress"
DATA_STREAK = "streak"
DATA_TASK_RULES = "task_rules"
DATA_TASK_INSTANCES = "task_instances"
DATA_HABITS = "habits"
DATA_LIBRARY = "library"
DATA_DAILY_ASSIGNMENTS = "daily_assignments"
DATA_WEEKLY_BOSS = "weekly_boss"
DATA_COINS_TOTAL = "coins_total"

# Collections stored as {id: entity}
ENTITY_COLLECTIONS = (
    DATA_TASK_RULES,
    DATA_TASK_INSTANCES,
    DATA_HABITS,
    DATA_LIBRARY,
)

# ------------------------------------------------------------------------------------------------
# Ledger Entries
# ------------------------------------------------------------------------------------------------
DATA_LEDGER_ID = "id"
DATA_LEDGER_TS = "ts"
DATA_LEDGER_DAY = "day"
DATA_LEDGER_TYPE = "type"
DATA_LEDGER_SUBJECT_ID = "subject_id"
DATA_LEDGER_SUBJECT_LABEL = "subject_label"
DATA_LEDGER_POINTS_DELTA = "points_delta"
DATA_LEDGER_COINS_DELTA = "coins_delta"

LEDGER_TYPE_TASK = "task"
LEDGER_TYPE_HABIT = "habit"
LEDGER_TYPE_CHALLENGE = "challenge"
LEDGER_TYPE_BOSS = "boss"
LEDGER_TYPE_LIBRARY = "library"
LEDGER_TYPE_MINT = "mint"
LEDGER_TYPE_PURCHASE = "purchase"

LEDGER_TYPES = frozenset(
    {
        LEDGER_TYPE_TASK,
        LEDGER_TYPE_HABIT,
        LEDGER_TYPE_CHALLENGE,
        LEDGER_TYPE_BOSS,
        LEDGER_TYPE_LIBRARY,
        LEDGER_TYPE_MINT,
        LEDGER_TYPE_PURCHASE,
    }
)

# Award types that can be undone
UNDOABLE_LEDGER_TYPES = frozenset(
    {
        LEDGER_TYPE_TASK,
        LEDGER_TYPE_HABIT,
        LEDGER_TYPE_CHALLENGE,
        LEDGER_TYPE_BOSS,
        LEDGER_TYPE_LIBRARY,
    }
)

LEDGER_SUBJECT_COINS = "coins"
LEDGER_LABEL_MINT = "Coin mint"
LEDGER_LABEL_RECLAIM = "Coin reclaim"
LEDGER_LABEL_POWER_HOUR = "Power Hour (60m)"

# ------------------------------------------------------------------------------------------------
# Day Summaries (progress)
# ------------------------------------------------------------------------------------------------
DATA_SUMMARY_POINTS = "points"
DATA_SUMMARY_COINS_EARNED = "coins_earned"
DATA_SUMMARY_TASKS_DONE = "tasks_done"
DATA_SUMMARY_HABITS_DONE = "habits_done"
DATA_SUMMARY_CHALLENGES_DONE = "challenges_done"
DATA_SUMMARY_BOSS_TICKS = "boss_ticks"
DATA_SUMMARY_MISSED_TODOS = "missed_todos"

# Ledger type -> per-day counter it increments
SUMMARY_COUNTER_BY_TYPE = {
    LEDGER_TYPE_TASK: DATA_SUMMARY_TASKS_DONE,
    LEDGER_TYPE_HABIT: DATA_SUMMARY_HABITS_DONE,
    LEDGER_TYPE_CHALLENGE: DATA_SUMMARY_CHALLENGES_DONE,
    LEDGER_TYPE_BOSS: DATA_SUMMARY_BOSS_TICKS,
}

DATA_STREAK_CURRENT = "current"

# ------------------------------------------------------------------------------------------------
# Profile
# ------------------------------------------------------------------------------------------------
DATA_PROFILE_COINS = "coins"
DATA_PROFILE_BEST_STREAK = "best_streak"

# ------------------------------------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------------------------------------
DATA_SETTINGS_DAILY_GOAL = "daily_goal"
DATA_SETTINGS_POINTS_PER_COIN = "points_per_coin"
DATA_SETTINGS_DAILY_CHALLENGES_COUNT = "daily_challenges_count"
DATA_SETTINGS_CHALLENGE_MULTIPLIER = "challenge_multiplier"
DATA_SETTINGS_BOSS_TASKS_PER_WEEK = "boss_tasks_per_week"
DATA_SETTINGS_BOSS_TIMES_MIN = "boss_times_min"
DATA_SETTINGS_BOSS_TIMES_MAX = "boss_times_max"

DEFAULT_DAILY_GOAL = 60
DEFAULT_POINTS_PER_COIN = 100
DEFAULT_DAILY_CHALLENGES_COUNT = 3
DEFAULT_CHALLENGE_MULTIPLIER = 1.5
DEFAULT_BOSS_TASKS_PER_WEEK = 5
DEFAULT_BOSS_TIMES_MIN = 2
DEFAULT_BOSS_TIMES_MAX = 5

MIN_POINTS_PER_COIN = 1
MAX_POINTS_PER_COIN = 1_000_000
MAX_DAILY_GOAL = 1_000_000
MIN_DAILY_CHALLENGES = 0
MAX_DAILY_CHALLENGES = 10
MIN_CHALLENGE_MULTIPLIER = 1.0
MAX_CHALLENGE_MULTIPLIER = 2.0
MIN_BOSS_TASKS_PER_WEEK = 1
MAX_BOSS_TASKS_PER_WEEK = 10
MIN_BOSS_TIMES = 1
MAX_BOSS_TIMES = 14

# ------------------------------------------------------------------------------------------------
# Today Runtime
# ------------------------------------------------------------------------------------------------
DATA_TODAY_DAY = "day"
DATA_TODAY_POINTS_RUNTIME = "points_runtime"
DATA_TODAY_COINS_UNMINTED = "coins_unminted"
DATA_TODAY_POWER_HOUR_ENDS_AT = "power_hour_ends_at"
DATA_TODAY_HABITS_STATUS = "habits_status"

DATA_HABIT_STATUS_TALLY = "tally"
DATA_HABIT_STATUS_DONE = "done"

# ------------------------------------------------------------------------------------------------
# Entities
# ------------------------------------------------------------------------------------------------
DATA_ENTITY_ID = "id"
DATA_ENTITY_TITLE = "title"
DATA_ENTITY_ACTIVE = "active"

# Habits
DATA_HABIT_KIND = "kind"
DATA_HABIT_TARGET_PER_DAY = "target_per_day"
DATA_HABIT_POINTS_ON_COMPLETE = "points_on_complete"
DATA_HABIT_BY_WEEKDAY = "by_weekday"

HABIT_KIND_BINARY = "binary"
HABIT_KIND_COUNTER = "counter"
HABIT_KINDS = frozenset({HABIT_KIND_BINARY, HABIT_KIND_COUNTER})

DEFAULT_HABIT_POINTS = 10
DEFAULT_HABIT_TARGET_PER_DAY = 1

# Task rules and instances
DATA_TASK_POINTS = "points"
DATA_TASK_RULE_BY_WEEKDAY = "by_weekday"
DATA_TASK_INSTANCE_DAY = "day"
DATA_TASK_INSTANCE_RULE_ID = "rule_id"
DATA_TASK_INSTANCE_DONE = "done"

DEFAULT_TASK_POINTS = 10

# Library items (quick actions)
DATA_LIBRARY_POINTS = "points"
DATA_LIBRARY_COOLDOWN_HOURS = "cooldown_hours"
DATA_LIBRARY_MAX_PER_DAY = "max_per_day"
DATA_LIBRARY_ALLOWED_WEEKDAYS = "allowed_weekdays"
DATA_LIBRARY_INCLUDE_IN_CHALLENGES = "include_in_challenges"
DATA_LIBRARY_INCLUDE_IN_BOSS = "include_in_boss"
DATA_LIBRARY_PINNED = "pinned"
DATA_LIBRARY_LAST_DONE_AT = "last_done_at"

DEFAULT_LIBRARY_POINTS = 5

# Daily assignments
DATA_ASSIGNMENT_CHALLENGE_IDS = "challenge_ids"
DATA_ASSIGNMENT_SNAPSHOT = "snapshot"
DATA_SNAPSHOT_TITLE = "title"
DATA_SNAPSHOT_POINTS = "points"

# Weekly boss
DATA_BOSS_WEEK_START_DAY = "week_start_day"
DATA_BOSS_GOALS = "goals"
DATA_BOSS_REROLLS = "rerolls"
DATA_BOSS_COMPLETED = "completed"
DATA_BOSS_GOAL_ID = "id"
DATA_BOSS_GOAL_LABEL = "label"
DATA_BOSS_GOAL_TARGET = "target"
DATA_BOSS_GOAL_LINKED_TASK_ID = "linked_task_id"
DATA_BOSS_GOAL_POINTS_PER_TICK = "points_per_tick"
DATA_BOSS_GOAL_TALLY = "tally"

BOSS_GOAL_ID_PREFIX = "bg_"

# ------------------------------------------------------------------------------------------------
# Award Math
# ------------------------------------------------------------------------------------------------
POWER_HOUR_MULTIPLIER = 1.5
POWER_HOUR_COST_COINS = 1
POWER_HOUR_DURATION_MINUTES = 60

BOSS_REROLL_PENALTY_STEP = 0.1
BOSS_REROLL_PENALTY_FLOOR = 0.7

MIN_AWARD_POINTS = 1

# ------------------------------------------------------------------------------------------------
# Content Generation Seeds
# ------------------------------------------------------------------------------------------------
SEED_PREFIX_CHALLENGE = "CHAL:"
SEED_PREFIX_BOSS = "BOSS:"
SEED_BOSS_TARGET_STREAM_XOR = 0x9E3779B9

# ------------------------------------------------------------------------------------------------
# Streaks
# ------------------------------------------------------------------------------------------------
STREAK_HORIZON_DAYS = 365

# ------------------------------------------------------------------------------------------------
# Dispatcher Signals
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_STATE_CHANGED = "state_changed"
SIGNAL_SUFFIX_DAY_ROLLED_OVER = "day_rolled_over"
SIGNAL_SUFFIX_BOSS_GENERATED = "boss_generated"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_AWARD_TASK = "award_task"
SERVICE_UNCOMPLETE_TASK = "uncomplete_task"
SERVICE_AWARD_HABIT = "award_habit"
SERVICE_HABIT_INCREMENT = "habit_increment"
SERVICE_HABIT_DECREMENT = "habit_decrement"
SERVICE_AWARD_LIBRARY_ITEM = "award_library_item"
SERVICE_AWARD_CHALLENGE = "award_challenge"
SERVICE_AWARD_BOSS_TICK = "award_boss_tick"
SERVICE_UNDO_LAST = "undo_last"
SERVICE_SPEND_COINS = "spend_coins"
SERVICE_START_POWER_HOUR = "start_power_hour"
SERVICE_REROLL_BOSS = "reroll_boss"
SERVICE_EXPORT_STATE = "export_state"
SERVICE_IMPORT_STATE = "import_state"
SERVICE_RESET_ALL_DATA = "reset_all_data"

# Content management
SERVICE_ADD_HABIT = "add_habit"
SERVICE_EDIT_HABIT = "edit_habit"
SERVICE_DELETE_HABIT = "delete_habit"
SERVICE_TOGGLE_HABIT = "toggle_habit"
SERVICE_ADD_TASK_RULE = "add_task_rule"
SERVICE_EDIT_TASK_RULE = "edit_task_rule"
SERVICE_DELETE_TASK_RULE = "delete_task_rule"
SERVICE_TOGGLE_TASK_RULE = "toggle_task_rule"
SERVICE_ADD_LIBRARY_ITEM = "add_library_item"
SERVICE_EDIT_LIBRARY_ITEM = "edit_library_item"
SERVICE_DELETE_LIBRARY_ITEM = "delete_library_item"
SERVICE_TOGGLE_LIBRARY_ITEM = "toggle_library_item"
SERVICE_ADD_TASK = "add_task"
SERVICE_EDIT_TASK = "edit_task"
SERVICE_DELETE_TASK = "delete_task"
SERVICE_UPDATE_SETTINGS = "update_settings"

FIELD_INSTANCE_ID = "instance_id"
FIELD_HABIT_ID = "habit_id"
FIELD_RULE_ID = "rule_id"
FIELD_ITEM_ID = "item_id"
FIELD_CHALLENGE_ID = "challenge_id"
FIELD_GOAL_ID = "goal_id"
FIELD_TYPE = "type"
FIELD_SUBJECT_ID = "subject_id"
FIELD_AMOUNT = "amount"
FIELD_LABEL = "label"
FIELD_STATE = "state"
FIELD_ACTION_ID = "action_id"

# ------------------------------------------------------------------------------------------------
# Refusal Reasons (AwardResult.reason)
# ------------------------------------------------------------------------------------------------
REASON_NOTHING_TO_UNDO = "nothing to undo"
REASON_INSUFFICIENT_COINS_TO_RECLAIM = "insufficient coins to reclaim"
REASON_INSUFFICIENT_COINS = "insufficient coins"
REASON_NOT_FOUND = "not found"
REASON_INACTIVE = "inactive"
REASON_ALREADY_DONE = "already done"
REASON_NOT_DONE = "not done"
REASON_NOT_ASSIGNED_TODAY = "not assigned today"
REASON_GOAL_COMPLETE = "goal already complete"
REASON_WRONG_HABIT_KIND = "wrong habit kind"
REASON_COOLING_DOWN = "cooling down"
REASON_MAX_PER_DAY = "max per day reached"
REASON_POWER_HOUR_ACTIVE = "power hour already active"
REASON_INVALID_AMOUNT = "invalid amount"

# ------------------------------------------------------------------------------------------------
# Validation Error Keys
# ------------------------------------------------------------------------------------------------
TRANS_KEY_INVALID_TITLE = "invalid_title"
TRANS_KEY_INVALID_POINTS = "invalid_points"
TRANS_KEY_INVALID_WEEKDAYS = "invalid_weekdays"
TRANS_KEY_INVALID_HABIT_KIND = "invalid_habit_kind"
TRANS_KEY_INVALID_TARGET = "invalid_target"
TRANS_KEY_INVALID_DAY = "invalid_day"
TRANS_KEY_INVALID_LIMIT = "invalid_limit"
TRANS_KEY_INVALID_TIMESTAMP = "invalid_timestamp"
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_ERROR_INVALID_IMPORT = "invalid_import"

MSG_NO_ENTRY_FOUND = "No QuestLog entry found"
