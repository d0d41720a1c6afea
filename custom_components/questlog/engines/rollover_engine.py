"""Rollover Engine - Pure planning for day and week transitions.

ARCHITECTURE: Pure logic, NO Home Assistant dependencies. DayManager applies
what these functions plan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..utils import dt_utils
from .ledger_engine import LedgerEngine

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..type_defs import TaskInstanceData, TaskRuleData, WeeklyBoss


class RolloverEngine:
    """Stateless day/week rollover planning."""

    @staticmethod
    def needs_rollover(stored_day: str | None, current_day: str) -> bool:
        """True when the stored day key is set and differs from the real day."""
        return bool(stored_day) and stored_day != current_day

    @staticmethod
    def count_overdue(
        task_instances: Mapping[str, TaskInstanceData], day: str
    ) -> int:
        """Count a day's task instances that were never completed."""
        return sum(
            1
            for instance in task_instances.values()
            if instance.get(const.DATA_TASK_INSTANCE_DAY) == day
            and not instance.get(const.DATA_TASK_INSTANCE_DONE)
        )

    @staticmethod
    def plan_task_instances(
        task_rules: Mapping[str, TaskRuleData],
        task_instances: Mapping[str, TaskInstanceData],
        day: str,
    ) -> list[dict[str, Any]]:
        """Instance inputs for every active rule scheduled on day that lacks one.

        Idempotent: a rule that already has an instance for the day is skipped.
        """
        weekday = dt_utils.weekday_index(day)
        existing = {
            instance.get(const.DATA_TASK_INSTANCE_RULE_ID)
            for instance in task_instances.values()
            if instance.get(const.DATA_TASK_INSTANCE_DAY) == day
        }
        planned: list[dict[str, Any]] = []
        for rule_id, rule in sorted(task_rules.items()):
            if not rule.get(const.DATA_ENTITY_ACTIVE, True):
                continue
            if not LedgerEngine.is_scheduled(
                rule.get(const.DATA_TASK_RULE_BY_WEEKDAY), weekday
            ):
                continue
            if rule_id in existing:
                continue
            planned.append(
                {
                    const.DATA_ENTITY_TITLE: rule.get(const.DATA_ENTITY_TITLE, ""),
                    const.DATA_TASK_POINTS: int(rule.get(const.DATA_TASK_POINTS) or 0),
                    const.DATA_TASK_INSTANCE_DAY: day,
                    const.DATA_TASK_INSTANCE_RULE_ID: rule_id,
                    const.DATA_TASK_INSTANCE_DONE: False,
                }
            )
        return planned

    @staticmethod
    def needs_new_boss(boss: WeeklyBoss | None, day: str) -> bool:
        """True when the stored boss is missing, from another week, or a goalless placeholder."""
        if not boss:
            return True
        if boss.get(const.DATA_BOSS_WEEK_START_DAY) != dt_utils.week_start_of(day):
            return True
        return not boss.get(const.DATA_BOSS_GOALS) and not boss.get(const.DATA_BOSS_REROLLS)
