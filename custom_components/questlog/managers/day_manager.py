"""Day Manager - Heartbeat, day/week rollover and generated content.

Runs once at startup and on every heartbeat tick. Each run is a single
coordinator transaction that:
1. Finalizes the previous day when the local date has changed
2. Clears an expired Power Hour
3. Ensures today's task instances and challenges exist
4. Ensures the current week's boss exists

Every step is idempotent, so repeated heartbeats within a day change nothing.

Signals Emitted:
- SIGNAL_SUFFIX_DAY_ROLLED_OVER: previous_day, new_day, missed_todos
- SIGNAL_SUFFIX_BOSS_GENERATED: week_start_day, rerolls
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import actions as act, const
from ..engines import BossEngine, ChallengeEngine, LedgerEngine, RolloverEngine
from ..reducer import apply_action
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import QuestLogCoordinator
    from ..type_defs import QuestLogData
    from .award_manager import AwardManager

HEARTBEAT_ACTION = "heartbeat"


class DayManager(BaseManager):
    """Owns the heartbeat state machine."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: QuestLogCoordinator,
        award_manager: AwardManager,
    ) -> None:
        """Initialize day manager.

        Args:
            hass: Home Assistant instance
            coordinator: Parent coordinator
            award_manager: Used to clear an expired Power Hour inside the heartbeat
        """
        super().__init__(hass, coordinator)
        self._award_manager = award_manager

    async def async_heartbeat(self) -> None:
        """Run one heartbeat against the current local day."""
        current_day = dt_utils.today_key()
        events: list[tuple[str, dict[str, Any]]] = []

        async with self.coordinator.async_transaction(HEARTBEAT_ACTION) as draft:
            rolled = self._rollover(draft, current_day)
            if rolled is not None:
                events.append((const.SIGNAL_SUFFIX_DAY_ROLLED_OVER, rolled))
            self._award_manager.clear_power_hour_if_expired(draft, dt_utils.now_ts())
            self.ensure_today_generated(draft, current_day)
            boss = self.ensure_week_boss(draft, current_day)
            if boss is not None:
                events.append((const.SIGNAL_SUFFIX_BOSS_GENERATED, boss))

        for suffix, payload in events:
            self.emit(suffix, **payload)

    async def async_reroll_boss(self, *, action_id: str | None = None) -> bool:
        """Regenerate the current week's boss goals with rerolls + 1.

        Returns:
            False when the action id was already seen, True otherwise
        """
        if not self.coordinator.claim_action_id(action_id):
            return False

        try:
            async with self.coordinator.async_transaction(const.SERVICE_REROLL_BOSS) as draft:
                boss = BossEngine.reroll(
                    draft[const.DATA_LIBRARY],
                    draft[const.DATA_SETTINGS],
                    draft[const.DATA_WEEKLY_BOSS],
                )
                apply_action(draft, act.SetWeeklyBoss(boss=boss))
        except BaseException:
            self.coordinator.release_action_id(action_id)
            raise

        const.LOGGER.info(
            "INFO: Rerolled weekly boss for %s (rerolls=%s, %s goals)",
            boss[const.DATA_BOSS_WEEK_START_DAY],
            boss[const.DATA_BOSS_REROLLS],
            len(boss[const.DATA_BOSS_GOALS]),
        )
        self.emit(
            const.SIGNAL_SUFFIX_BOSS_GENERATED,
            week_start_day=boss[const.DATA_BOSS_WEEK_START_DAY],
            rerolls=boss[const.DATA_BOSS_REROLLS],
        )
        return True

    # ==========================================================================
    # Draft Steps
    # ==========================================================================

    def _rollover(self, draft: QuestLogData, current_day: str) -> dict[str, Any] | None:
        """Finalize the stored day if the local date moved on.

        coins_unminted carries across days; points_runtime and the habit
        status cache start fresh.
        """
        previous_day = draft[const.DATA_TODAY][const.DATA_TODAY_DAY]
        if not RolloverEngine.needs_rollover(previous_day, current_day):
            return None

        missed = RolloverEngine.count_overdue(draft[const.DATA_TASK_INSTANCES], previous_day)
        self.coordinator.refresh_aggregates(draft)
        LedgerEngine.set_missed(draft[const.DATA_PROGRESS], previous_day, missed)
        apply_action(
            draft,
            act.TodayPatch(
                patch={
                    const.DATA_TODAY_DAY: current_day,
                    const.DATA_TODAY_POINTS_RUNTIME: 0,
                    const.DATA_TODAY_HABITS_STATUS: {},
                }
            ),
        )
        const.LOGGER.info(
            "INFO: Day rolled over from %s to %s (%s missed todo(s))",
            previous_day,
            current_day,
            missed,
        )
        return {"previous_day": previous_day, "new_day": current_day, "missed_todos": missed}

    def ensure_today_generated(self, draft: QuestLogData, day: str) -> None:
        """Create today's rule instances and challenge assignment if missing."""
        planned = RolloverEngine.plan_task_instances(
            draft[const.DATA_TASK_RULES], draft[const.DATA_TASK_INSTANCES], day
        )
        for instance in planned:
            apply_action(draft, act.TaskInstanceAdd(instance=instance))
        if planned:
            const.LOGGER.debug("DEBUG: Generated %s task instance(s) for %s", len(planned), day)

        if day not in draft[const.DATA_DAILY_ASSIGNMENTS]:
            assignment = ChallengeEngine.generate(
                draft[const.DATA_LIBRARY],
                draft[const.DATA_SETTINGS],
                draft[const.DATA_DAILY_ASSIGNMENTS],
                day,
            )
            apply_action(
                draft,
                act.AssignDailyChallenges(
                    day=day,
                    challenge_ids=assignment[const.DATA_ASSIGNMENT_CHALLENGE_IDS],
                    snapshot=assignment[const.DATA_ASSIGNMENT_SNAPSHOT],
                ),
            )
            const.LOGGER.debug(
                "DEBUG: Assigned challenges for %s: %s",
                day,
                assignment[const.DATA_ASSIGNMENT_CHALLENGE_IDS],
            )

    def ensure_week_boss(self, draft: QuestLogData, day: str) -> dict[str, Any] | None:
        """Generate a fresh boss when the stored one belongs to another week."""
        if not RolloverEngine.needs_new_boss(draft.get(const.DATA_WEEKLY_BOSS), day):
            return None

        week_start = dt_utils.week_start_of(day)
        boss = BossEngine.generate(draft[const.DATA_LIBRARY], draft[const.DATA_SETTINGS], week_start)
        current = draft.get(const.DATA_WEEKLY_BOSS) or {}
        if (
            not boss[const.DATA_BOSS_GOALS]
            and current.get(const.DATA_BOSS_WEEK_START_DAY) == week_start
        ):
            # Nothing eligible yet; keep the placeholder
            return None
        apply_action(draft, act.SetWeeklyBoss(boss=boss))
        const.LOGGER.info(
            "INFO: Generated weekly boss for %s with %s goal(s)",
            week_start,
            len(boss[const.DATA_BOSS_GOALS]),
        )
        return {"week_start_day": week_start, "rerolls": 0}
