"""State reducer: applies one Action to a draft snapshot.

apply_action() mutates the draft it is given. The coordinator always passes a
deep copy and only commits it after the whole transaction succeeds, so a
raised InvalidActionError or EntityValidationError leaves live state untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from . import actions as act, const, data_builders as db
from .migration import migrate, migrate_boss
from .utils import dt_utils

if TYPE_CHECKING:
    from .type_defs import QuestLogData

# Fields TodayPatch may touch
TODAY_PATCH_FIELDS = frozenset(
    {
        const.DATA_TODAY_DAY,
        const.DATA_TODAY_POINTS_RUNTIME,
        const.DATA_TODAY_COINS_UNMINTED,
        const.DATA_TODAY_POWER_HOUR_ENDS_AT,
        const.DATA_TODAY_HABITS_STATUS,
    }
)


class InvalidActionError(Exception):
    """Raised for unknown actions, unknown ids and illegal patches."""


def apply_action(data: QuestLogData, action: act.Action) -> None:
    """Apply an action to the draft in place.

    Raises:
        InvalidActionError: Unknown action, unknown entity id, bad patch
        EntityValidationError: Entity input failed validation
    """
    today = data[const.DATA_TODAY][const.DATA_TODAY_DAY]

    match action:
        case act.SetState(value=value):
            replacement = migrate(value, today)
            data.clear()  # type: ignore[attr-defined]
            data.update(replacement)

        case act.TodayPatch(patch=patch):
            unknown = set(patch) - TODAY_PATCH_FIELDS
            if unknown:
                raise InvalidActionError(f"Unknown today fields: {sorted(unknown)}")
            if const.DATA_TODAY_DAY in patch and not dt_utils.is_valid_day_key(
                patch[const.DATA_TODAY_DAY]
            ):
                raise InvalidActionError(f"Invalid day key: {patch[const.DATA_TODAY_DAY]}")
            data[const.DATA_TODAY].update(patch)  # type: ignore[typeddict-item]

        case act.LedgerAppend(entry=entry):
            entry_type = entry.get(const.DATA_LEDGER_TYPE)
            if not isinstance(entry_type, str) or entry_type not in const.LEDGER_TYPES:
                raise InvalidActionError(f"Unknown ledger type: {entry_type!r}")
            if not dt_utils.is_valid_day_key(entry.get(const.DATA_LEDGER_DAY)):
                raise InvalidActionError("Ledger entry needs a valid day")
            data[const.DATA_LEDGER].append(dict(entry))  # type: ignore[arg-type]

        case act.ProgressRebuild() | act.AppTick():
            # Aggregates are rebuilt by the coordinator after every action
            pass

        case act.SettingsUpdate(patch=patch):
            data[const.DATA_SETTINGS] = db.build_settings(patch, data[const.DATA_SETTINGS])
            _clamp_bucket(data)

        # ----- Task instances -----
        case act.TaskInstanceAdd(instance=instance):
            _add(data, const.DATA_TASK_INSTANCES, db.build_task_instance(instance, default_day=today))
        case act.TaskInstanceEdit(id=entity_id, patch=patch):
            current = _require(data, const.DATA_TASK_INSTANCES, entity_id)
            _add(data, const.DATA_TASK_INSTANCES, db.build_task_instance(patch, current))
        case act.TaskInstanceDelete(id=entity_id):
            _delete(data, const.DATA_TASK_INSTANCES, entity_id)

        # ----- Task rules -----
        case act.TaskRuleAdd(rule=rule):
            _add(data, const.DATA_TASK_RULES, db.build_task_rule(rule))
        case act.TaskRuleEdit(id=entity_id, patch=patch):
            current = _require(data, const.DATA_TASK_RULES, entity_id)
            _add(data, const.DATA_TASK_RULES, db.build_task_rule(patch, current))
        case act.TaskRuleDelete(id=entity_id):
            _delete(data, const.DATA_TASK_RULES, entity_id)
        case act.TaskRuleToggleActive(id=entity_id):
            _toggle(data, const.DATA_TASK_RULES, entity_id)

        # ----- Habits -----
        case act.HabitAdd(item=item):
            _add(data, const.DATA_HABITS, db.build_habit(item))
        case act.HabitEdit(id=entity_id, patch=patch):
            current = _require(data, const.DATA_HABITS, entity_id)
            _add(data, const.DATA_HABITS, db.build_habit(patch, current))
        case act.HabitDelete(id=entity_id):
            _delete(data, const.DATA_HABITS, entity_id)
            data[const.DATA_TODAY][const.DATA_TODAY_HABITS_STATUS].pop(entity_id, None)
        case act.HabitToggleActive(id=entity_id):
            _toggle(data, const.DATA_HABITS, entity_id)

        # ----- Library -----
        case act.LibraryItemAdd(item=item):
            _add(data, const.DATA_LIBRARY, db.build_library_item(item))
        case act.LibraryItemEdit(id=entity_id, patch=patch):
            current = _require(data, const.DATA_LIBRARY, entity_id)
            _add(data, const.DATA_LIBRARY, db.build_library_item(patch, current))
        case act.LibraryItemDelete(id=entity_id):
            _delete(data, const.DATA_LIBRARY, entity_id)
        case act.LibraryItemToggleActive(id=entity_id):
            _toggle(data, const.DATA_LIBRARY, entity_id)

        # ----- Generated content -----
        case act.AssignDailyChallenges(day=day, challenge_ids=ids, snapshot=snapshot):
            if not dt_utils.is_valid_day_key(day):
                raise InvalidActionError(f"Invalid day key: {day}")
            data[const.DATA_DAILY_ASSIGNMENTS][day] = {
                const.DATA_ASSIGNMENT_CHALLENGE_IDS: list(ids),
                const.DATA_ASSIGNMENT_SNAPSHOT: {k: dict(v) for k, v in snapshot.items()},
            }
        case act.SetWeeklyBoss(boss=boss):
            if not dt_utils.is_valid_day_key(boss.get(const.DATA_BOSS_WEEK_START_DAY)):
                raise InvalidActionError("Weekly boss needs a valid week_start_day")
            data[const.DATA_WEEKLY_BOSS] = migrate_boss(boss, today)  # type: ignore[typeddict-item]

        case _:
            raise InvalidActionError(f"Unknown action: {action!r}")


# ==============================================================================
# Collection Helpers
# ==============================================================================


def _collection(data: QuestLogData, collection: str) -> dict[str, Any]:
    return data[collection]  # type: ignore[literal-required]


def _require(data: QuestLogData, collection: str, entity_id: str) -> dict[str, Any]:
    entity = _collection(data, collection).get(entity_id)
    if entity is None:
        raise InvalidActionError(f"Unknown {collection} id: {entity_id}")
    return entity


def _add(data: QuestLogData, collection: str, entity: Any) -> None:
    _collection(data, collection)[entity[const.DATA_ENTITY_ID]] = entity


def _delete(data: QuestLogData, collection: str, entity_id: str) -> None:
    _require(data, collection, entity_id)
    del _collection(data, collection)[entity_id]


def _toggle(data: QuestLogData, collection: str, entity_id: str) -> None:
    entity = _require(data, collection, entity_id)
    entity[const.DATA_ENTITY_ACTIVE] = not entity.get(const.DATA_ENTITY_ACTIVE, True)


def _clamp_bucket(data: QuestLogData) -> None:
    """Keep coins_unminted below points_per_coin after the rate changes."""
    limit = data[const.DATA_SETTINGS][const.DATA_SETTINGS_POINTS_PER_COIN] - 1
    today = data[const.DATA_TODAY]
    if today[const.DATA_TODAY_COINS_UNMINTED] > limit:
        const.LOGGER.info(
            "INFO: Clamping unminted points %s to %s after points_per_coin change",
            today[const.DATA_TODAY_COINS_UNMINTED],
            limit,
        )
        today[const.DATA_TODAY_COINS_UNMINTED] = limit
