"""Entity building and validation.

This module is the SINGLE SOURCE OF TRUTH for:
- Entity field defaults
- Entity validation
- Complete entity structure building

### Build Functions
Each entity type has a `build_<entity>()` function that:
- Takes user input with DATA_* keys
- Generates an id (UUID) for new entities
- Applies field defaults and coerces types
- Returns a complete entity dict ready for storage

One function handles both create (existing=None) and update (existing=entity).
Field priority is: user_input > existing > default.

Consumers:
- reducer.py (add/edit actions)
- migration.py (normalizing stored and imported entities)
"""

from __future__ import annotations

from collections.abc import Callable
import math
from typing import Any
import uuid

from . import const
from .type_defs import (
    HabitData,
    LibraryItemData,
    SettingsData,
    TaskInstanceData,
    TaskRuleData,
)
from .utils import dt_utils
from .utils.math_utils import clamp, clamp_int, coerce_float

# ==============================================================================
# EXCEPTIONS
# ==============================================================================


class EntityValidationError(Exception):
    """Validation error with field-specific information.

    Attributes:
        field: The DATA_* key that failed validation
        translation_key: The TRANS_KEY_* constant for the error message
        placeholders: Optional dict for translation string placeholders
    """

    def __init__(
        self,
        field: str,
        translation_key: str,
        placeholders: dict[str, str] | None = None,
    ) -> None:
        self.field = field
        self.translation_key = translation_key
        self.placeholders = placeholders or {}
        super().__init__(f"{field}: {translation_key}")


# ==============================================================================
# HELPER FUNCTIONS FOR FIELD NORMALIZATION
# ==============================================================================


def _field_getter(
    user_input: dict[str, Any], existing: dict[str, Any] | None
) -> Callable[[str, Any], Any]:
    """Return get_field(key, default) honoring user_input > existing > default."""

    def get_field(data_key: str, default: Any) -> Any:
        if data_key in user_input:
            return user_input[data_key]
        if existing is not None:
            return existing.get(data_key, default)
        return default

    return get_field


def _entity_id(existing: dict[str, Any] | None) -> str:
    if existing is not None and existing.get(const.DATA_ENTITY_ID):
        return str(existing[const.DATA_ENTITY_ID])
    return str(uuid.uuid4())


def _require_title(value: Any) -> str:
    title = str(value).strip() if value is not None else ""
    if not title:
        raise EntityValidationError(
            field=const.DATA_ENTITY_TITLE,
            translation_key=const.TRANS_KEY_INVALID_TITLE,
        )
    return title


def _int_field(
    field: str,
    value: Any,
    default: int,
    minimum: int = 0,
    translation_key: str = const.TRANS_KEY_INVALID_POINTS,
) -> int:
    """Coerce a numeric field, rejecting garbage, infinities and values below minimum."""
    if value is None or value == "":
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError) as err:
        raise EntityValidationError(
            field=field,
            translation_key=translation_key,
            placeholders={"value": str(value)},
        ) from err
    if number < minimum:
        raise EntityValidationError(
            field=field,
            translation_key=translation_key,
            placeholders={"value": str(value)},
        )
    return number


def _optional_limit(field: str, value: Any) -> float | None:
    """Optional positive limit; 0, empty or None mean "no limit"."""
    if value in (None, "", 0):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as err:
        raise EntityValidationError(
            field=field, translation_key=const.TRANS_KEY_INVALID_LIMIT
        ) from err
    if number < 0 or not math.isfinite(number):
        raise EntityValidationError(field=field, translation_key=const.TRANS_KEY_INVALID_LIMIT)
    return number or None


def _normalize_weekdays(field: str, value: Any) -> list[int] | None:
    """Normalize a weekday filter to a sorted list of 0..6, or None for every day.

    Handles None, empty lists and single integers. This prevents bugs like a
    bare 3 being treated as "no filter".
    """
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        raise EntityValidationError(field=field, translation_key=const.TRANS_KEY_INVALID_WEEKDAYS)
    days: set[int] = set()
    for raw in value:
        try:
            day = int(raw)
        except (TypeError, ValueError, OverflowError) as err:
            raise EntityValidationError(
                field=field, translation_key=const.TRANS_KEY_INVALID_WEEKDAYS
            ) from err
        if not 0 <= day <= 6:
            raise EntityValidationError(
                field=field, translation_key=const.TRANS_KEY_INVALID_WEEKDAYS
            )
        days.add(day)
    return sorted(days) or None


# ==============================================================================
# HABITS
# ==============================================================================


def build_habit(
    user_input: dict[str, Any],
    existing: HabitData | None = None,
) -> HabitData:
    """Build habit data for create or update operations.

    Raises:
        EntityValidationError: On empty title, unknown kind, bad target or points
    """
    get_field = _field_getter(user_input, existing)  # type: ignore[arg-type]

    kind = get_field(const.DATA_HABIT_KIND, const.HABIT_KIND_BINARY)
    if not isinstance(kind, str) or kind not in const.HABIT_KINDS:
        raise EntityValidationError(
            field=const.DATA_HABIT_KIND,
            translation_key=const.TRANS_KEY_INVALID_HABIT_KIND,
            placeholders={"value": str(kind)},
        )

    target = 1
    if kind == const.HABIT_KIND_COUNTER:
        target = _int_field(
            const.DATA_HABIT_TARGET_PER_DAY,
            get_field(const.DATA_HABIT_TARGET_PER_DAY, const.DEFAULT_HABIT_TARGET_PER_DAY),
            const.DEFAULT_HABIT_TARGET_PER_DAY,
        )
        if target < 1:
            raise EntityValidationError(
                field=const.DATA_HABIT_TARGET_PER_DAY,
                translation_key=const.TRANS_KEY_INVALID_TARGET,
            )

    return HabitData(
        id=_entity_id(existing),  # type: ignore[arg-type]
        title=_require_title(get_field(const.DATA_ENTITY_TITLE, "")),
        kind=kind,
        target_per_day=target,
        points_on_complete=_int_field(
            const.DATA_HABIT_POINTS_ON_COMPLETE,
            get_field(const.DATA_HABIT_POINTS_ON_COMPLETE, const.DEFAULT_HABIT_POINTS),
            const.DEFAULT_HABIT_POINTS,
        ),
        by_weekday=_normalize_weekdays(
            const.DATA_HABIT_BY_WEEKDAY, get_field(const.DATA_HABIT_BY_WEEKDAY, None)
        ),
        active=bool(get_field(const.DATA_ENTITY_ACTIVE, True)),
    )


# ==============================================================================
# TASKS
# ==============================================================================


def build_task_rule(
    user_input: dict[str, Any],
    existing: TaskRuleData | None = None,
) -> TaskRuleData:
    """Build a recurring task rule."""
    get_field = _field_getter(user_input, existing)  # type: ignore[arg-type]
    return TaskRuleData(
        id=_entity_id(existing),  # type: ignore[arg-type]
        title=_require_title(get_field(const.DATA_ENTITY_TITLE, "")),
        points=_int_field(
            const.DATA_TASK_POINTS,
            get_field(const.DATA_TASK_POINTS, const.DEFAULT_TASK_POINTS),
            const.DEFAULT_TASK_POINTS,
        ),
        by_weekday=_normalize_weekdays(
            const.DATA_TASK_RULE_BY_WEEKDAY,
            get_field(const.DATA_TASK_RULE_BY_WEEKDAY, None),
        ),
        active=bool(get_field(const.DATA_ENTITY_ACTIVE, True)),
    )


def build_task_instance(
    user_input: dict[str, Any],
    existing: TaskInstanceData | None = None,
    *,
    default_day: str | None = None,
) -> TaskInstanceData:
    """Build a task instance; ad hoc instances have no rule_id.

    Args:
        user_input: Data with DATA_* keys
        existing: Existing instance for updates
        default_day: Day used when neither input nor existing has one
    """
    get_field = _field_getter(user_input, existing)  # type: ignore[arg-type]
    day = get_field(const.DATA_TASK_INSTANCE_DAY, default_day)
    if not dt_utils.is_valid_day_key(day):
        raise EntityValidationError(
            field=const.DATA_TASK_INSTANCE_DAY,
            translation_key=const.TRANS_KEY_INVALID_DAY,
            placeholders={"value": str(day)},
        )
    rule_id = get_field(const.DATA_TASK_INSTANCE_RULE_ID, None)
    return TaskInstanceData(
        id=_entity_id(existing),  # type: ignore[arg-type]
        title=_require_title(get_field(const.DATA_ENTITY_TITLE, "")),
        points=_int_field(
            const.DATA_TASK_POINTS,
            get_field(const.DATA_TASK_POINTS, const.DEFAULT_TASK_POINTS),
            const.DEFAULT_TASK_POINTS,
        ),
        day=day,
        rule_id=str(rule_id) if rule_id else None,
        done=bool(get_field(const.DATA_TASK_INSTANCE_DONE, False)),
    )


# ==============================================================================
# LIBRARY
# ==============================================================================


def build_library_item(
    user_input: dict[str, Any],
    existing: LibraryItemData | None = None,
) -> LibraryItemData:
    """Build a quick-action library item.

    include_in_challenges and include_in_boss default to True.
    """
    get_field = _field_getter(user_input, existing)  # type: ignore[arg-type]

    max_per_day = _optional_limit(
        const.DATA_LIBRARY_MAX_PER_DAY, get_field(const.DATA_LIBRARY_MAX_PER_DAY, None)
    )
    last_done_at = _int_field(
        const.DATA_LIBRARY_LAST_DONE_AT,
        get_field(const.DATA_LIBRARY_LAST_DONE_AT, None),
        0,
        translation_key=const.TRANS_KEY_INVALID_TIMESTAMP,
    )

    return LibraryItemData(
        id=_entity_id(existing),  # type: ignore[arg-type]
        title=_require_title(get_field(const.DATA_ENTITY_TITLE, "")),
        points=_int_field(
            const.DATA_LIBRARY_POINTS,
            get_field(const.DATA_LIBRARY_POINTS, const.DEFAULT_LIBRARY_POINTS),
            const.DEFAULT_LIBRARY_POINTS,
        ),
        cooldown_hours=_optional_limit(
            const.DATA_LIBRARY_COOLDOWN_HOURS,
            get_field(const.DATA_LIBRARY_COOLDOWN_HOURS, None),
        ),
        max_per_day=int(max_per_day) if max_per_day else None,
        allowed_weekdays=_normalize_weekdays(
            const.DATA_LIBRARY_ALLOWED_WEEKDAYS,
            get_field(const.DATA_LIBRARY_ALLOWED_WEEKDAYS, None),
        ),
        include_in_challenges=get_field(const.DATA_LIBRARY_INCLUDE_IN_CHALLENGES, True)
        is not False,
        include_in_boss=get_field(const.DATA_LIBRARY_INCLUDE_IN_BOSS, True) is not False,
        pinned=bool(get_field(const.DATA_LIBRARY_PINNED, False)),
        active=bool(get_field(const.DATA_ENTITY_ACTIVE, True)),
        last_done_at=last_done_at or None,
    )


# ==============================================================================
# SETTINGS
# ==============================================================================


def build_settings(
    user_input: dict[str, Any],
    existing: SettingsData | None = None,
) -> SettingsData:
    """Build settings, clamping every value into its documented range.

    Settings never fail validation: out-of-range or malformed values are
    clamped or replaced by their defaults. boss_times_max is clamped after
    boss_times_min so min <= max always holds.
    """
    get_field = _field_getter(user_input, existing)  # type: ignore[arg-type]

    boss_min = clamp_int(
        get_field(const.DATA_SETTINGS_BOSS_TIMES_MIN, const.DEFAULT_BOSS_TIMES_MIN),
        const.MIN_BOSS_TIMES,
        const.MAX_BOSS_TIMES,
        const.DEFAULT_BOSS_TIMES_MIN,
    )
    return SettingsData(
        daily_goal=clamp_int(
            get_field(const.DATA_SETTINGS_DAILY_GOAL, const.DEFAULT_DAILY_GOAL),
            0,
            const.MAX_DAILY_GOAL,
            const.DEFAULT_DAILY_GOAL,
        ),
        points_per_coin=clamp_int(
            get_field(const.DATA_SETTINGS_POINTS_PER_COIN, const.DEFAULT_POINTS_PER_COIN),
            const.MIN_POINTS_PER_COIN,
            const.MAX_POINTS_PER_COIN,
            const.DEFAULT_POINTS_PER_COIN,
        ),
        daily_challenges_count=clamp_int(
            get_field(
                const.DATA_SETTINGS_DAILY_CHALLENGES_COUNT,
                const.DEFAULT_DAILY_CHALLENGES_COUNT,
            ),
            const.MIN_DAILY_CHALLENGES,
            const.MAX_DAILY_CHALLENGES,
            const.DEFAULT_DAILY_CHALLENGES_COUNT,
        ),
        challenge_multiplier=float(
            clamp(
                coerce_float(
                    get_field(
                        const.DATA_SETTINGS_CHALLENGE_MULTIPLIER,
                        const.DEFAULT_CHALLENGE_MULTIPLIER,
                    ),
                    const.DEFAULT_CHALLENGE_MULTIPLIER,
                ),
                const.MIN_CHALLENGE_MULTIPLIER,
                const.MAX_CHALLENGE_MULTIPLIER,
            )
        ),
        boss_tasks_per_week=clamp_int(
            get_field(
                const.DATA_SETTINGS_BOSS_TASKS_PER_WEEK, const.DEFAULT_BOSS_TASKS_PER_WEEK
            ),
            const.MIN_BOSS_TASKS_PER_WEEK,
            const.MAX_BOSS_TASKS_PER_WEEK,
            const.DEFAULT_BOSS_TASKS_PER_WEEK,
        ),
        boss_times_min=boss_min,
        boss_times_max=clamp_int(
            get_field(const.DATA_SETTINGS_BOSS_TIMES_MAX, const.DEFAULT_BOSS_TIMES_MAX),
            boss_min,
            const.MAX_BOSS_TIMES,
            const.DEFAULT_BOSS_TIMES_MAX,
        ),
    )


# Collection name -> builder, used by migration and reducer
BUILDERS_BY_COLLECTION: dict[str, Callable[..., Any]] = {
    const.DATA_HABITS: build_habit,
    const.DATA_TASK_RULES: build_task_rule,
    const.DATA_TASK_INSTANCES: build_task_instance,
    const.DATA_LIBRARY: build_library_item,
}
