"""Award Engine - Pure logic for point math and coin minting.

This engine provides stateless, pure Python functions for:
- Multipliers (Power Hour, boss reroll penalty) with half-up rounding
- Coin minting against a carry-over bucket
- Coin reclaiming on undo, with negative-balance protection
- Undo target lookup and quick-action throttling

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
State management belongs in AwardManager.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .. import const
from ..utils.math_utils import round_half_up

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..type_defs import LedgerEntry, LibraryItemData, TodayRuntime

MS_PER_HOUR = 3_600_000


class InsufficientCoinsError(Exception):
    """Raised when an operation needs more coins than the profile holds.

    Attributes:
        needed: Coins the operation requires
        available: Coins currently held
        shortfall: needed - available
        reason: Refusal reason reported to callers
    """

    def __init__(
        self, needed: int, available: int, reason: str = const.REASON_INSUFFICIENT_COINS
    ) -> None:
        self.needed = needed
        self.available = available
        self.reason = reason
        self.shortfall = needed - available
        super().__init__(
            f"Insufficient coins: needed={needed}, available={available}, "
            f"shortfall={self.shortfall}"
        )


@dataclass(frozen=True)
class MintPlan:
    """Outcome of adding points to the bucket."""

    minted: int
    bucket: int


@dataclass(frozen=True)
class ReclaimPlan:
    """Outcome of removing points from the bucket."""

    reclaimed: int
    bucket: int


class AwardEngine:
    """Pure logic engine for award values and coin movements.

    All methods are static - no instance state.
    """

    # ==========================================================================
    # Multipliers
    # ==========================================================================

    @staticmethod
    def is_power_hour_active(today: TodayRuntime, now_ms: int) -> bool:
        """True while now is before today's Power Hour end time."""
        ends_at = today.get(const.DATA_TODAY_POWER_HOUR_ENDS_AT)
        if not ends_at:
            return False
        return now_ms < int(ends_at)

    @staticmethod
    def apply_multipliers(base_points: float, power_hour_active: bool) -> int:
        """Apply the Power Hour gate, round half up and floor at 1.

        Every award passes through here, so a completed action always grants at
        least one point.

        Examples:
            apply_multipliers(10, True) → 15
            apply_multipliers(0, False) → 1
        """
        value = float(base_points or 0)
        if power_hour_active:
            value *= const.POWER_HOUR_MULTIPLIER
        return max(const.MIN_AWARD_POINTS, round_half_up(value))

    @staticmethod
    def reroll_multiplier(rerolls: int) -> float:
        """Penalty multiplier for a boss that has been rerolled N times."""
        return max(
            const.BOSS_REROLL_PENALTY_FLOOR,
            1 - const.BOSS_REROLL_PENALTY_STEP * max(0, int(rerolls or 0)),
        )

    @staticmethod
    def boss_tick_base(points_per_tick: float, rerolls: int) -> int:
        """Boss tick base points after the reroll penalty, before Power Hour.

        Examples:
            boss_tick_base(10, 2) → 8
            boss_tick_base(10, 5) → 7
        """
        penalized = float(points_per_tick or 0) * AwardEngine.reroll_multiplier(rerolls)
        return max(const.MIN_AWARD_POINTS, round_half_up(penalized))

    @staticmethod
    def challenge_points(points: float, multiplier: float) -> int:
        """Snapshot reward for a challenge, multiplier clamped to 1.0..2.0."""
        mult = max(
            const.MIN_CHALLENGE_MULTIPLIER,
            min(float(multiplier), const.MAX_CHALLENGE_MULTIPLIER),
        )
        return max(const.MIN_AWARD_POINTS, round_half_up(float(points or 0) * mult))

    # ==========================================================================
    # Mint / Reclaim
    # ==========================================================================

    @staticmethod
    def plan_mint(bucket: int, points: int, points_per_coin: int) -> MintPlan:
        """Add points to the bucket and mint a coin per full rate.

        After planning, 0 <= bucket < points_per_coin holds.

        Examples:
            plan_mint(90, 20, 100) → MintPlan(minted=1, bucket=10)
        """
        rate = max(const.MIN_POINTS_PER_COIN, int(points_per_coin))
        new_bucket = int(bucket) + int(points)
        minted = 0
        while new_bucket >= rate:
            minted += 1
            new_bucket -= rate
        return MintPlan(minted=minted, bucket=new_bucket)

    @staticmethod
    def plan_reclaim(
        bucket: int, negative_points: int, points_per_coin: int, available_coins: int
    ) -> ReclaimPlan:
        """Remove points from the bucket, reclaiming coins to cover a deficit.

        Nothing is mutated here; the caller appends entries only when this
        returns.

        Raises:
            InsufficientCoinsError: If the deficit needs more coins than held
        """
        rate = max(const.MIN_POINTS_PER_COIN, int(points_per_coin))
        new_bucket = int(bucket) + int(negative_points)
        need = 0
        while new_bucket < 0:
            need += 1
            new_bucket += rate
        if need > 0 and int(available_coins) < need:
            raise InsufficientCoinsError(
                need, int(available_coins), const.REASON_INSUFFICIENT_COINS_TO_RECLAIM
            )
        return ReclaimPlan(reclaimed=need, bucket=new_bucket)

    @staticmethod
    def validate_sufficient_coins(balance: int, cost: int) -> bool:
        """True if balance covers cost."""
        return balance >= cost

    # ==========================================================================
    # Ledger Lookups
    # ==========================================================================

    @staticmethod
    def find_last_positive(
        ledger: Sequence[LedgerEntry], entry_type: str, subject_id: str, day: str
    ) -> LedgerEntry | None:
        """Find the most recent same-day award for a subject that is still in effect.

        Scans backward; each undo entry met on the way cancels the next
        positive one, so undoing twice never reverses the same award twice.
        """
        pending_undos = 0
        for entry in reversed(ledger):
            if (
                entry.get(const.DATA_LEDGER_DAY) != day
                or entry.get(const.DATA_LEDGER_TYPE) != entry_type
                or entry.get(const.DATA_LEDGER_SUBJECT_ID) != subject_id
            ):
                continue
            points = int(entry.get(const.DATA_LEDGER_POINTS_DELTA) or 0)
            if points < 0:
                pending_undos += 1
            elif points > 0:
                if pending_undos:
                    pending_undos -= 1
                    continue
                return entry
        return None

    @staticmethod
    def count_uses_today(ledger: Sequence[LedgerEntry], item_id: str, day: str) -> int:
        """Count net positive uses of a library item on a day."""
        net = 0
        for entry in reversed(ledger):
            if entry.get(const.DATA_LEDGER_DAY) != day:
                continue
            if (
                entry.get(const.DATA_LEDGER_TYPE) != const.LEDGER_TYPE_LIBRARY
                or entry.get(const.DATA_LEDGER_SUBJECT_ID) != item_id
            ):
                continue
            points = int(entry.get(const.DATA_LEDGER_POINTS_DELTA) or 0)
            if points > 0:
                net += 1
            elif points < 0:
                net -= 1
        return max(0, net)

    @staticmethod
    def check_library_throttle(
        item: LibraryItemData, ledger: Sequence[LedgerEntry], day: str, now_ms: int
    ) -> str | None:
        """Return a refusal reason if the item cannot be used right now.

        Returns:
            const.REASON_COOLING_DOWN, const.REASON_MAX_PER_DAY or None
        """
        cooldown = item.get(const.DATA_LIBRARY_COOLDOWN_HOURS)
        last_done = item.get(const.DATA_LIBRARY_LAST_DONE_AT)
        if cooldown and last_done:
            ready_at = int(last_done) + float(cooldown) * MS_PER_HOUR
            if now_ms < ready_at:
                return const.REASON_COOLING_DOWN

        max_per_day = item.get(const.DATA_LIBRARY_MAX_PER_DAY)
        if max_per_day and int(max_per_day) > 0:
            uses = AwardEngine.count_uses_today(ledger, item[const.DATA_ENTITY_ID], day)
            if uses >= int(max_per_day):
                return const.REASON_MAX_PER_DAY
        return None
