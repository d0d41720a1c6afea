"""Challenge Engine - Deterministic daily challenge generation.

Picks today's challenges from the quick-action library with a seed derived
from the day key, so the same day and library always yield the same picks.

ARCHITECTURE: Pure logic, NO Home Assistant dependencies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const
from ..utils import dt_utils
from ..utils.math_utils import clamp_int, coerce_float
from ..utils.seed_utils import hash_string, seeded_shuffle
from .award_engine import AwardEngine

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..type_defs import DailyAssignment, LibraryItemData


class ChallengeEngine:
    """Stateless daily challenge generator."""

    @staticmethod
    def eligible_items(
        library: Mapping[str, LibraryItemData], day: str
    ) -> list[LibraryItemData]:
        """Active items included in challenges and allowed on the day's weekday."""
        weekday = dt_utils.weekday_index(day)
        pool = []
        for item in library.values():
            if not item.get(const.DATA_ENTITY_ACTIVE, True):
                continue
            if item.get(const.DATA_LIBRARY_INCLUDE_IN_CHALLENGES) is False:
                continue
            allowed = item.get(const.DATA_LIBRARY_ALLOWED_WEEKDAYS)
            if allowed and weekday not in allowed:
                continue
            pool.append(item)
        return pool

    @staticmethod
    def generate(
        library: Mapping[str, LibraryItemData],
        settings: Mapping[str, Any],
        daily_assignments: Mapping[str, DailyAssignment],
        day: str,
    ) -> DailyAssignment:
        """Generate the challenge assignment for a day.

        The pool is shuffled with seed hash("CHAL:" + day), then items that were
        assigned yesterday are moved to the back (stable), and the first N are
        taken. Rewards are frozen into the snapshot.

        Args:
            library: Library items keyed by id
            settings: Current settings
            daily_assignments: Existing assignments keyed by day
            day: Day key to generate for

        Returns:
            DailyAssignment with ordered challenge_ids and snapshot
        """
        count = clamp_int(
            settings.get(const.DATA_SETTINGS_DAILY_CHALLENGES_COUNT),
            const.MIN_DAILY_CHALLENGES,
            const.MAX_DAILY_CHALLENGES,
            const.DEFAULT_DAILY_CHALLENGES_COUNT,
        )
        multiplier = coerce_float(
            settings.get(const.DATA_SETTINGS_CHALLENGE_MULTIPLIER),
            const.DEFAULT_CHALLENGE_MULTIPLIER,
        )

        yesterday = daily_assignments.get(dt_utils.add_days(day, -1)) or {}
        used_yesterday = set(yesterday.get(const.DATA_ASSIGNMENT_CHALLENGE_IDS) or [])

        # Sort on a stable key so shuffle input order never depends on dict history
        pool = sorted(
            ChallengeEngine.eligible_items(library, day),
            key=lambda item: item[const.DATA_ENTITY_ID],
        )
        shuffled = seeded_shuffle(pool, hash_string(f"{const.SEED_PREFIX_CHALLENGE}{day}"))
        preferred = sorted(
            shuffled, key=lambda item: item[const.DATA_ENTITY_ID] in used_yesterday
        )

        challenge_ids: list[str] = []
        snapshot: dict[str, Any] = {}
        for item in preferred[:count]:
            item_id = item[const.DATA_ENTITY_ID]
            challenge_ids.append(item_id)
            snapshot[item_id] = {
                const.DATA_SNAPSHOT_TITLE: item.get(const.DATA_ENTITY_TITLE, ""),
                const.DATA_SNAPSHOT_POINTS: AwardEngine.challenge_points(
                    item.get(const.DATA_LIBRARY_POINTS) or 0, multiplier
                ),
            }

        return {
            const.DATA_ASSIGNMENT_CHALLENGE_IDS: challenge_ids,
            const.DATA_ASSIGNMENT_SNAPSHOT: snapshot,
        }
