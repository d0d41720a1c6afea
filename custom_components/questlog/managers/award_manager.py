"""Award Manager - Stateful point, coin and undo workflows.

Every public coroutine runs as one coordinator transaction: the ledger append,
the mint or reclaim entry, the today patch and the entity patch either all
commit together (followed by one rebuild and one publish) or none do.

Refusals (unknown ids, throttled items, insufficient coins) are returned as
AwardResult(ok=False, reason) and never raised to callers.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .. import actions as act, const
from ..engines import AwardEngine, BossEngine, InsufficientCoinsError, LedgerEngine
from ..reducer import apply_action
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from ..type_defs import QuestLogData

MS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class AwardResult:
    """Outcome of an award, undo or purchase."""

    ok: bool
    reason: str | None = None
    points: int = 0
    coins: int = 0


class AwardRefusedError(Exception):
    """Raised inside a transaction to discard the draft with a reason."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class AwardManager(BaseManager):
    """Applies awards, undos and coin purchases to the coordinator state."""

    # ==========================================================================
    # Public API
    # ==========================================================================

    async def async_award_task(
        self, instance_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Award a task instance and mark it done."""

        def operation(draft: QuestLogData) -> AwardResult:
            instance = self._require(draft, const.DATA_TASK_INSTANCES, instance_id)
            if instance.get(const.DATA_TASK_INSTANCE_DONE):
                raise AwardRefusedError(const.REASON_ALREADY_DONE)
            result = self._award(
                draft,
                const.LEDGER_TYPE_TASK,
                instance_id,
                instance[const.DATA_ENTITY_TITLE],
                instance.get(const.DATA_TASK_POINTS) or 0,
            )
            apply_action(
                draft,
                act.TaskInstanceEdit(id=instance_id, patch={const.DATA_TASK_INSTANCE_DONE: True}),
            )
            return result

        return await self._async_run(const.SERVICE_AWARD_TASK, action_id, operation)

    async def async_uncomplete_task(
        self, instance_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Undo today's award for a task instance and mark it not done."""

        def operation(draft: QuestLogData) -> AwardResult:
            instance = self._require(draft, const.DATA_TASK_INSTANCES, instance_id)
            if not instance.get(const.DATA_TASK_INSTANCE_DONE):
                raise AwardRefusedError(const.REASON_NOT_DONE)
            return self._undo(draft, const.LEDGER_TYPE_TASK, instance_id)

        return await self._async_run(const.SERVICE_UNCOMPLETE_TASK, action_id, operation)

    async def async_award_habit(
        self, habit_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Complete a binary habit for today."""

        def operation(draft: QuestLogData) -> AwardResult:
            habit = self._require_active(draft, const.DATA_HABITS, habit_id)
            if habit.get(const.DATA_HABIT_KIND) != const.HABIT_KIND_BINARY:
                raise AwardRefusedError(const.REASON_WRONG_HABIT_KIND)
            if self._habit_status(draft, habit_id)[const.DATA_HABIT_STATUS_DONE]:
                raise AwardRefusedError(const.REASON_ALREADY_DONE)
            result = self._award_habit(draft, habit)
            self._set_habit_status(draft, habit_id, tally=1, done=True)
            return result

        return await self._async_run(const.SERVICE_AWARD_HABIT, action_id, operation)

    async def async_habit_increment(
        self, habit_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Add one to a counter habit's tally; award when it reaches the target."""

        def operation(draft: QuestLogData) -> AwardResult:
            habit = self._require_active(draft, const.DATA_HABITS, habit_id)
            if habit.get(const.DATA_HABIT_KIND) != const.HABIT_KIND_COUNTER:
                raise AwardRefusedError(const.REASON_WRONG_HABIT_KIND)
            target = max(1, int(habit.get(const.DATA_HABIT_TARGET_PER_DAY) or 1))
            status = self._habit_status(draft, habit_id)
            tally = min(target, status[const.DATA_HABIT_STATUS_TALLY] + 1)
            done = status[const.DATA_HABIT_STATUS_DONE]
            result = AwardResult(ok=True)
            if not done and tally >= target:
                result = self._award_habit(draft, habit)
                done = True
            self._set_habit_status(draft, habit_id, tally=tally, done=done)
            return result

        return await self._async_run(const.SERVICE_HABIT_INCREMENT, action_id, operation)

    async def async_habit_decrement(
        self, habit_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Remove one from a counter habit's tally; undo the award below target."""

        def operation(draft: QuestLogData) -> AwardResult:
            habit = self._require(draft, const.DATA_HABITS, habit_id)
            if habit.get(const.DATA_HABIT_KIND) != const.HABIT_KIND_COUNTER:
                raise AwardRefusedError(const.REASON_WRONG_HABIT_KIND)
            target = max(1, int(habit.get(const.DATA_HABIT_TARGET_PER_DAY) or 1))
            status = self._habit_status(draft, habit_id)
            tally = max(0, min(target, status[const.DATA_HABIT_STATUS_TALLY]) - 1)
            done = status[const.DATA_HABIT_STATUS_DONE]
            result = AwardResult(ok=True)
            if done and tally < target:
                result = self._undo(draft, const.LEDGER_TYPE_HABIT, habit_id)
                done = False
            self._set_habit_status(draft, habit_id, tally=tally, done=done)
            return result

        return await self._async_run(const.SERVICE_HABIT_DECREMENT, action_id, operation)

    async def async_award_library_tap(
        self, item_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Use a quick action, honoring its cooldown and daily limit."""

        def operation(draft: QuestLogData) -> AwardResult:
            item = self._require_active(draft, const.DATA_LIBRARY, item_id)
            now_ms = dt_utils.now_ts()
            reason = AwardEngine.check_library_throttle(
                item, draft[const.DATA_LEDGER], self._today(draft), now_ms
            )
            if reason:
                raise AwardRefusedError(reason)
            result = self._award(
                draft,
                const.LEDGER_TYPE_LIBRARY,
                item_id,
                item[const.DATA_ENTITY_TITLE],
                item.get(const.DATA_LIBRARY_POINTS) or 0,
            )
            apply_action(
                draft,
                act.LibraryItemEdit(id=item_id, patch={const.DATA_LIBRARY_LAST_DONE_AT: now_ms}),
            )
            return result

        return await self._async_run(const.SERVICE_AWARD_LIBRARY_ITEM, action_id, operation)

    async def async_award_challenge(
        self, challenge_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Complete one of today's challenges at its frozen snapshot value."""

        def operation(draft: QuestLogData) -> AwardResult:
            today = self._today(draft)
            assignment = draft[const.DATA_DAILY_ASSIGNMENTS].get(today) or {}
            snapshot = (assignment.get(const.DATA_ASSIGNMENT_SNAPSHOT) or {}).get(challenge_id)
            if (
                challenge_id not in (assignment.get(const.DATA_ASSIGNMENT_CHALLENGE_IDS) or [])
                or snapshot is None
            ):
                raise AwardRefusedError(const.REASON_NOT_ASSIGNED_TODAY)
            if AwardEngine.find_last_positive(
                draft[const.DATA_LEDGER], const.LEDGER_TYPE_CHALLENGE, challenge_id, today
            ):
                raise AwardRefusedError(const.REASON_ALREADY_DONE)
            return self._award(
                draft,
                const.LEDGER_TYPE_CHALLENGE,
                challenge_id,
                snapshot.get(const.DATA_SNAPSHOT_TITLE, ""),
                snapshot.get(const.DATA_SNAPSHOT_POINTS) or 0,
            )

        return await self._async_run(const.SERVICE_AWARD_CHALLENGE, action_id, operation)

    async def async_award_boss_tick(
        self, goal_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Tick a weekly boss goal; the reroll penalty applies before Power Hour."""

        def operation(draft: QuestLogData) -> AwardResult:
            boss = draft[const.DATA_WEEKLY_BOSS]
            goal = next(
                (
                    g
                    for g in boss.get(const.DATA_BOSS_GOALS, [])
                    if g[const.DATA_BOSS_GOAL_ID] == goal_id
                ),
                None,
            )
            if goal is None:
                raise AwardRefusedError(const.REASON_NOT_FOUND)
            tallies = BossEngine.compute_tallies(draft[const.DATA_LEDGER], boss)
            if tallies.get(goal_id, 0) >= int(goal.get(const.DATA_BOSS_GOAL_TARGET) or 0):
                raise AwardRefusedError(const.REASON_GOAL_COMPLETE)
            base = AwardEngine.boss_tick_base(
                goal.get(const.DATA_BOSS_GOAL_POINTS_PER_TICK) or 0,
                boss.get(const.DATA_BOSS_REROLLS) or 0,
            )
            return self._award(
                draft,
                const.LEDGER_TYPE_BOSS,
                goal_id,
                goal.get(const.DATA_BOSS_GOAL_LABEL, ""),
                base,
            )

        return await self._async_run(const.SERVICE_AWARD_BOSS_TICK, action_id, operation)

    async def async_undo_last(
        self, entry_type: str, subject_id: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Undo the most recent award for a subject today."""

        def operation(draft: QuestLogData) -> AwardResult:
            if entry_type not in const.UNDOABLE_LEDGER_TYPES:
                raise AwardRefusedError(const.REASON_NOTHING_TO_UNDO)
            return self._undo(draft, entry_type, subject_id)

        return await self._async_run(const.SERVICE_UNDO_LAST, action_id, operation)

    async def async_spend_coins(
        self, amount: int, label: str, *, action_id: str | None = None
    ) -> AwardResult:
        """Spend coins on a reward; refused when the balance is too low."""

        def operation(draft: QuestLogData) -> AwardResult:
            return self._spend(draft, amount, label)

        return await self._async_run(const.SERVICE_SPEND_COINS, action_id, operation)

    async def async_start_power_hour(self, *, action_id: str | None = None) -> AwardResult:
        """Buy a Power Hour: one coin for 60 minutes of 1.5x points."""

        def operation(draft: QuestLogData) -> AwardResult:
            now_ms = dt_utils.now_ts()
            if AwardEngine.is_power_hour_active(draft[const.DATA_TODAY], now_ms):
                raise AwardRefusedError(const.REASON_POWER_HOUR_ACTIVE)
            result = self._spend(draft, const.POWER_HOUR_COST_COINS, const.LEDGER_LABEL_POWER_HOUR)
            ends_at = now_ms + const.POWER_HOUR_DURATION_MINUTES * MS_PER_MINUTE
            apply_action(
                draft, act.TodayPatch(patch={const.DATA_TODAY_POWER_HOUR_ENDS_AT: ends_at})
            )
            const.LOGGER.info("INFO: Power Hour active until %s", ends_at)
            return result

        return await self._async_run(const.SERVICE_START_POWER_HOUR, action_id, operation)

    def clear_power_hour_if_expired(self, draft: QuestLogData, now_ms: int) -> bool:
        """Reset power_hour_ends_at on the draft once it has passed."""
        ends_at = draft[const.DATA_TODAY].get(const.DATA_TODAY_POWER_HOUR_ENDS_AT)
        if not ends_at or now_ms < ends_at:
            return False
        apply_action(draft, act.TodayPatch(patch={const.DATA_TODAY_POWER_HOUR_ENDS_AT: None}))
        const.LOGGER.debug("DEBUG: Power Hour expired")
        return True

    # ==========================================================================
    # Transaction Runner
    # ==========================================================================

    async def _async_run(
        self,
        name: str,
        action_id: str | None,
        operation: Callable[[QuestLogData], AwardResult],
    ) -> AwardResult:
        if not self.coordinator.claim_action_id(action_id):
            return AwardResult(ok=True)

        try:
            async with self.coordinator.async_transaction(name) as draft:
                result = operation(draft)
        except AwardRefusedError as refused:
            self.coordinator.release_action_id(action_id)
            const.LOGGER.info("INFO: %s refused: %s", name, refused.reason)
            return AwardResult(ok=False, reason=refused.reason)
        except InsufficientCoinsError as err:
            self.coordinator.release_action_id(action_id)
            const.LOGGER.warning(
                "WARNING: %s refused: %s (needs %s coin(s), %s available)",
                name,
                err.reason,
                err.needed,
                err.available,
            )
            return AwardResult(ok=False, reason=err.reason)
        except BaseException:
            self.coordinator.release_action_id(action_id)
            raise
        return result

    # ==========================================================================
    # Draft Operations
    # ==========================================================================

    def _award(
        self,
        draft: QuestLogData,
        entry_type: str,
        subject_id: str,
        label: str,
        base_points: float,
    ) -> AwardResult:
        """Apply multipliers, then append the award with minting."""
        active = AwardEngine.is_power_hour_active(draft[const.DATA_TODAY], dt_utils.now_ts())
        points = AwardEngine.apply_multipliers(base_points, active)
        minted = self._append_with_mint(draft, entry_type, subject_id, label, points)
        return AwardResult(ok=True, points=points, coins=minted)

    def _award_habit(self, draft: QuestLogData, habit: dict[str, Any]) -> AwardResult:
        return self._award(
            draft,
            const.LEDGER_TYPE_HABIT,
            habit[const.DATA_ENTITY_ID],
            habit[const.DATA_ENTITY_TITLE],
            habit.get(const.DATA_HABIT_POINTS_ON_COMPLETE) or 0,
        )

    def _append_with_mint(
        self,
        draft: QuestLogData,
        entry_type: str,
        subject_id: str,
        label: str,
        points: int,
    ) -> int:
        """Append a positive entry and mint coins from the bucket."""
        today = draft[const.DATA_TODAY]
        day = today[const.DATA_TODAY_DAY]
        now_ms = dt_utils.now_ts()
        apply_action(
            draft,
            act.LedgerAppend(
                entry=LedgerEngine.create_entry(
                    entry_type, subject_id, label, day=day, ts=now_ms, points_delta=points
                )
            ),
        )

        plan = AwardEngine.plan_mint(
            today.get(const.DATA_TODAY_COINS_UNMINTED) or 0,
            points,
            draft[const.DATA_SETTINGS][const.DATA_SETTINGS_POINTS_PER_COIN],
        )
        if plan.minted > 0:
            apply_action(
                draft,
                act.LedgerAppend(
                    entry=LedgerEngine.create_entry(
                        const.LEDGER_TYPE_MINT,
                        const.LEDGER_SUBJECT_COINS,
                        const.LEDGER_LABEL_MINT,
                        day=day,
                        ts=now_ms,
                        coins_delta=plan.minted,
                    )
                ),
            )
            const.LOGGER.debug("DEBUG: Minted %s coin(s), bucket now %s", plan.minted, plan.bucket)

        apply_action(
            draft,
            act.TodayPatch(
                patch={
                    const.DATA_TODAY_COINS_UNMINTED: plan.bucket,
                    const.DATA_TODAY_POINTS_RUNTIME: (
                        today.get(const.DATA_TODAY_POINTS_RUNTIME) or 0
                    )
                    + points,
                }
            ),
        )
        return plan.minted

    def _append_with_reclaim(
        self,
        draft: QuestLogData,
        entry_type: str,
        subject_id: str,
        label: str,
        negative_points: int,
    ) -> int:
        """Append an undo entry, reclaiming coins if the bucket goes negative.

        Raises:
            InsufficientCoinsError: Before anything is appended
        """
        today = draft[const.DATA_TODAY]
        day = today[const.DATA_TODAY_DAY]
        plan = AwardEngine.plan_reclaim(
            today.get(const.DATA_TODAY_COINS_UNMINTED) or 0,
            negative_points,
            draft[const.DATA_SETTINGS][const.DATA_SETTINGS_POINTS_PER_COIN],
            self._balance(draft),
        )
        now_ms = dt_utils.now_ts()
        apply_action(
            draft,
            act.LedgerAppend(
                entry=LedgerEngine.create_entry(
                    entry_type,
                    subject_id,
                    label,
                    day=day,
                    ts=now_ms,
                    points_delta=negative_points,
                )
            ),
        )
        if plan.reclaimed > 0:
            apply_action(
                draft,
                act.LedgerAppend(
                    entry=LedgerEngine.create_entry(
                        const.LEDGER_TYPE_MINT,
                        const.LEDGER_SUBJECT_COINS,
                        const.LEDGER_LABEL_RECLAIM,
                        day=day,
                        ts=now_ms,
                        coins_delta=-plan.reclaimed,
                    )
                ),
            )
            const.LOGGER.debug(
                "DEBUG: Reclaimed %s coin(s), bucket now %s", plan.reclaimed, plan.bucket
            )

        apply_action(
            draft,
            act.TodayPatch(
                patch={
                    const.DATA_TODAY_COINS_UNMINTED: plan.bucket,
                    const.DATA_TODAY_POINTS_RUNTIME: max(
                        0, (today.get(const.DATA_TODAY_POINTS_RUNTIME) or 0) + negative_points
                    ),
                }
            ),
        )
        return plan.reclaimed

    def _undo(self, draft: QuestLogData, entry_type: str, subject_id: str) -> AwardResult:
        """Reverse the last effective award for a subject today."""
        last = AwardEngine.find_last_positive(
            draft[const.DATA_LEDGER], entry_type, subject_id, self._today(draft)
        )
        if last is None:
            raise AwardRefusedError(const.REASON_NOTHING_TO_UNDO)

        points = abs(int(last[const.DATA_LEDGER_POINTS_DELTA]))
        reclaimed = self._append_with_reclaim(
            draft, entry_type, subject_id, last[const.DATA_LEDGER_SUBJECT_LABEL], -points
        )

        if entry_type == const.LEDGER_TYPE_TASK:
            instance = draft[const.DATA_TASK_INSTANCES].get(subject_id)
            if instance is not None:
                apply_action(
                    draft,
                    act.TaskInstanceEdit(
                        id=subject_id, patch={const.DATA_TASK_INSTANCE_DONE: False}
                    ),
                )
        elif entry_type == const.LEDGER_TYPE_HABIT:
            status = self._habit_status(draft, subject_id)
            habit = draft[const.DATA_HABITS].get(subject_id) or {}
            target = max(1, int(habit.get(const.DATA_HABIT_TARGET_PER_DAY) or 1))
            self._set_habit_status(
                draft,
                subject_id,
                tally=min(status[const.DATA_HABIT_STATUS_TALLY], target - 1),
                done=False,
            )
        return AwardResult(ok=True, points=-points, coins=-reclaimed)

    def _spend(self, draft: QuestLogData, amount: int, label: str) -> AwardResult:
        amount = int(amount)
        if amount < 1:
            raise AwardRefusedError(const.REASON_INVALID_AMOUNT)
        balance = self._balance(draft)
        if not AwardEngine.validate_sufficient_coins(balance, amount):
            raise InsufficientCoinsError(needed=amount, available=balance)
        apply_action(
            draft,
            act.LedgerAppend(
                entry=LedgerEngine.create_entry(
                    const.LEDGER_TYPE_PURCHASE,
                    const.LEDGER_SUBJECT_COINS,
                    label,
                    day=self._today(draft),
                    ts=dt_utils.now_ts(),
                    coins_delta=-amount,
                )
            ),
        )
        const.LOGGER.info("INFO: Spent %s coin(s) on '%s'", amount, label)
        return AwardResult(ok=True, coins=-amount)

    # ==========================================================================
    # Lookups
    # ==========================================================================

    @staticmethod
    def _today(draft: QuestLogData) -> str:
        return draft[const.DATA_TODAY][const.DATA_TODAY_DAY]

    @staticmethod
    def _balance(draft: QuestLogData) -> int:
        """Coin balance of the draft ledger, including entries not yet rebuilt."""
        return sum(
            int(entry.get(const.DATA_LEDGER_COINS_DELTA) or 0)
            for entry in draft[const.DATA_LEDGER]
        )

    @staticmethod
    def _require(draft: QuestLogData, collection: str, entity_id: str) -> dict[str, Any]:
        entity = draft[collection].get(entity_id)  # type: ignore[literal-required]
        if entity is None:
            raise AwardRefusedError(const.REASON_NOT_FOUND)
        return entity

    @staticmethod
    def _require_active(
        draft: QuestLogData, collection: str, entity_id: str
    ) -> dict[str, Any]:
        entity = AwardManager._require(draft, collection, entity_id)
        if not entity.get(const.DATA_ENTITY_ACTIVE, True):
            raise AwardRefusedError(const.REASON_INACTIVE)
        return entity

    @staticmethod
    def _habit_status(draft: QuestLogData, habit_id: str) -> dict[str, Any]:
        status = draft[const.DATA_TODAY][const.DATA_TODAY_HABITS_STATUS].get(habit_id) or {}
        return {
            const.DATA_HABIT_STATUS_TALLY: max(0, int(status.get(const.DATA_HABIT_STATUS_TALLY) or 0)),
            const.DATA_HABIT_STATUS_DONE: bool(status.get(const.DATA_HABIT_STATUS_DONE)),
        }

    @staticmethod
    def _set_habit_status(draft: QuestLogData, habit_id: str, *, tally: int, done: bool) -> None:
        statuses = dict(draft[const.DATA_TODAY][const.DATA_TODAY_HABITS_STATUS])
        statuses[habit_id] = {
            const.DATA_HABIT_STATUS_TALLY: max(0, tally),
            const.DATA_HABIT_STATUS_DONE: done,
        }
        apply_action(draft, act.TodayPatch(patch={const.DATA_TODAY_HABITS_STATUS: statuses}))
