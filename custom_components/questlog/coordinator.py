# File: coordinator.py
"""Coordinator for the QuestLog integration.

The coordinator is the state container: it owns the snapshot (settings,
entities, today runtime, ledger and the aggregates derived from it), applies
actions through the reducer, rebuilds aggregates, persists and publishes.

Every mutation goes through async_transaction(), which serializes writers on
one lock and commits a fully rebuilt draft or nothing at all.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
import copy
from datetime import datetime, timedelta
import json
from typing import TYPE_CHECKING, Any

from homeassistant.core import callback
from homeassistant.helpers.dispatcher import (
    async_dispatcher_connect,
    async_dispatcher_send,
)
from homeassistant.helpers.event import async_track_time_interval
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator
from homeassistant.util import dt as dt_util

from . import actions as act, const
from .data_builders import EntityValidationError
from .engines import BossEngine, LedgerEngine
from .helpers import get_event_signal, parse_import_payload
from .managers import AwardManager, DayManager
from .migration import default_state, migrate
from .reducer import InvalidActionError, apply_action
from .type_defs import QuestLogData
from .utils import dt_utils

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .store import QuestLogStore
    from .type_defs import BossGoal

StateListener = Callable[[QuestLogData, str], None]


class QuestLogCoordinator(DataUpdateCoordinator[QuestLogData]):
    """State container for one QuestLog instance."""

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: QuestLogStore,
    ) -> None:
        """Initialize the QuestLogCoordinator."""
        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            # Heartbeat runs on its own timer; entities are not required for it
            update_interval=None,
        )
        self.store = store
        self.data = default_state(dt_utils.today_key())
        self._lock = asyncio.Lock()
        self._recent_action_ids: deque[str] = deque(maxlen=const.RECENT_ACTION_ID_LIMIT)
        self._unsub_heartbeat: Callable[[], None] | None = None

        self.award_manager = AwardManager(hass, self)
        self.day_manager = DayManager(hass, self, self.award_manager)

    # -------------------------------------------------------------------------------------
    # Startup + Heartbeat
    # -------------------------------------------------------------------------------------

    async def async_initialize(self) -> None:
        """Load, migrate and start the heartbeat timer.

        The startup heartbeat runs in async_config_entry_first_refresh.
        """
        dt_utils.set_default_timezone(dt_util.get_time_zone(self.hass.config.time_zone))

        raw = await self.store.async_load()
        self.data = migrate(raw, dt_utils.today_key())
        self.refresh_aggregates(self.data)
        if raw is None:
            await self.store.async_save(self.data)

        self._cancel_heartbeat()
        self._unsub_heartbeat = async_track_time_interval(
            self.hass,
            self._async_heartbeat_tick,
            timedelta(seconds=const.HEARTBEAT_INTERVAL_SECONDS),
        )
        self.config_entry.async_on_unload(self._cancel_heartbeat)
        const.LOGGER.info(
            "INFO: QuestLog initialized (ledger=%s entries, coins=%s, streak=%s)",
            len(self.data[const.DATA_LEDGER]),
            self.coins,
            self.streak,
        )

    async def _async_heartbeat_tick(self, _now: datetime) -> None:
        await self.day_manager.async_heartbeat()

    @callback
    def _cancel_heartbeat(self) -> None:
        if self._unsub_heartbeat is not None:
            self._unsub_heartbeat()
            self._unsub_heartbeat = None

    async def async_shutdown(self) -> None:
        """Stop the heartbeat timer and shut down the coordinator."""
        self._cancel_heartbeat()
        await super().async_shutdown()

    async def _async_update_data(self) -> QuestLogData:
        """Manual refresh: run a heartbeat and return the snapshot."""
        await self.day_manager.async_heartbeat()
        return self.data

    # -------------------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------------------

    @asynccontextmanager
    async def async_transaction(self, source: str) -> AsyncIterator[QuestLogData]:
        """Apply a group of changes atomically.

        Yields a deep-copied draft. When the block exits cleanly, aggregates are
        rebuilt on the draft, the draft replaces the live snapshot, it is saved
        (unless nothing changed) and published once. Any exception discards the
        draft.

        Args:
            source: Action or operation name passed to subscribers
        """
        async with self._lock:
            draft: QuestLogData = copy.deepcopy(self.data)
            yield draft
            self.refresh_aggregates(draft)

            changed = draft != self.data
            self.data = draft
            if changed:
                await self.store.async_save(draft)
            self._publish(source)

    def refresh_aggregates(self, draft: QuestLogData) -> None:
        """Rebuild every ledger-derived cache on the snapshot in place."""
        today = draft[const.DATA_TODAY][const.DATA_TODAY_DAY]
        result = LedgerEngine.rebuild_from_ledger(
            draft[const.DATA_HABITS].values(),
            draft[const.DATA_LEDGER],
            today,
            previous_best=draft[const.DATA_PROFILE][const.DATA_PROFILE_BEST_STREAK],
            previous_progress=draft[const.DATA_PROGRESS],
        )
        draft[const.DATA_PROGRESS] = result.progress
        draft[const.DATA_COINS_TOTAL] = result.coins_total
        draft[const.DATA_STREAK] = {const.DATA_STREAK_CURRENT: result.streak_current}
        draft[const.DATA_PROFILE][const.DATA_PROFILE_COINS] = result.coins_total
        draft[const.DATA_PROFILE][const.DATA_PROFILE_BEST_STREAK] = result.best_streak

        boss = draft[const.DATA_WEEKLY_BOSS]
        tallies = BossEngine.compute_tallies(draft[const.DATA_LEDGER], boss)
        boss[const.DATA_BOSS_COMPLETED] = BossEngine.is_completed(boss, tallies)

    @callback
    def _publish(self, source: str) -> None:
        self.async_set_updated_data(self.data)
        async_dispatcher_send(
            self.hass,
            get_event_signal(self.config_entry.entry_id, const.SIGNAL_SUFFIX_STATE_CHANGED),
            self.data,
            source,
        )

    # -------------------------------------------------------------------------------------
    # Action Id De-duplication
    # -------------------------------------------------------------------------------------

    def claim_action_id(self, action_id: str | None) -> bool:
        """Remember an action id; False if it was seen recently.

        Check and append happen without an await in between, so two concurrent
        deliveries of the same id cannot both pass.
        """
        if action_id is None:
            return True
        if action_id in self._recent_action_ids:
            const.LOGGER.debug("DEBUG: Ignoring duplicate action id %s", action_id)
            return False
        self._recent_action_ids.append(action_id)
        return True

    def release_action_id(self, action_id: str | None) -> None:
        """Forget an action id whose operation failed, so it can be retried."""
        if action_id is not None and action_id in self._recent_action_ids:
            self._recent_action_ids.remove(action_id)

    # -------------------------------------------------------------------------------------
    # Dispatch / Subscribe
    # -------------------------------------------------------------------------------------

    async def async_dispatch(self, action: act.Action) -> bool:
        """Apply one action.

        Returns:
            True when applied (or ignored as a duplicate), False when rejected.
            Rejected actions leave state untouched.
        """
        if not self.claim_action_id(action.action_id):
            return True

        try:
            async with self.async_transaction(action.name) as draft:
                apply_action(draft, action)
        except (InvalidActionError, EntityValidationError) as err:
            self.release_action_id(action.action_id)
            const.LOGGER.warning("WARNING: Rejected action %s: %s", action.name, err)
            return False
        except BaseException:
            self.release_action_id(action.action_id)
            raise

        const.LOGGER.debug("DEBUG: Applied action %s", action.name)
        return True

    @callback
    def async_subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call listener(state, action_name) after every committed transaction.

        Returns:
            Callable that removes the subscription
        """
        return async_dispatcher_connect(
            self.hass,
            get_event_signal(self.config_entry.entry_id, const.SIGNAL_SUFFIX_STATE_CHANGED),
            listener,
        )

    # -------------------------------------------------------------------------------------
    # Export / Import / Reset
    # -------------------------------------------------------------------------------------

    def export_state(self) -> dict[str, Any]:
        """Return a deep copy of the current snapshot."""
        return copy.deepcopy(self.data)

    def export_state_json(self) -> str:
        """Serialize the current snapshot to JSON."""
        return json.dumps(self.data, ensure_ascii=False)

    async def async_import_state(self, raw: str | dict[str, Any]) -> None:
        """Replace the whole state with an imported snapshot.

        Raises:
            HomeAssistantError: Malformed JSON; state is left unchanged
        """
        payload = parse_import_payload(raw)
        migrated = migrate(payload, self.today)
        await self.async_dispatch(act.SetState(value=migrated))
        const.LOGGER.info(
            "INFO: Imported state with %s ledger entries",
            len(self.data[const.DATA_LEDGER]),
        )
        await self.day_manager.async_heartbeat()

    async def async_reset(self) -> None:
        """Wipe storage and restore a fresh first-run snapshot."""
        async with self._lock:
            await self.store.async_wipe()
            self.data = default_state(dt_utils.today_key())
            self.refresh_aggregates(self.data)
            self._recent_action_ids.clear()
            self._publish("reset")
        await self.day_manager.async_heartbeat()
        const.LOGGER.info("INFO: All QuestLog data reset")

    # -------------------------------------------------------------------------------------
    # Read Accessors
    # -------------------------------------------------------------------------------------

    @property
    def today(self) -> str:
        """Current runtime day key."""
        return self.data[const.DATA_TODAY][const.DATA_TODAY_DAY]

    @property
    def coins(self) -> int:
        """Ledger-derived coin balance."""
        return self.data[const.DATA_PROFILE][const.DATA_PROFILE_COINS]

    @property
    def streak(self) -> int:
        """Current streak length."""
        return self.data[const.DATA_STREAK][const.DATA_STREAK_CURRENT]

    def boss_goals_with_tally(self) -> list[BossGoal]:
        """Current boss goals with their tally recomputed from the ledger."""
        boss = self.data[const.DATA_WEEKLY_BOSS]
        tallies = BossEngine.compute_tallies(self.data[const.DATA_LEDGER], boss)
        return [
            {**goal, const.DATA_BOSS_GOAL_TALLY: tallies.get(goal[const.DATA_BOSS_GOAL_ID], 0)}
            for goal in boss.get(const.DATA_BOSS_GOALS, [])
        ]

    def habit_done(self, habit_id: str, day: str | None = None) -> bool:
        """Whether a habit is done on a day.

        Today reads the live status cache; any other day is reconstructed from
        the ledger.
        """
        if day is None or day == self.today:
            status = self.data[const.DATA_TODAY][const.DATA_TODAY_HABITS_STATUS].get(habit_id)
            return bool(status and status.get(const.DATA_HABIT_STATUS_DONE))
        return LedgerEngine.habit_done_on(self.data[const.DATA_LEDGER], habit_id, day)
