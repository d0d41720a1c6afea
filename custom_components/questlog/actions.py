"""Actions accepted by QuestLogCoordinator.async_dispatch().

Every state transition is one of the dataclasses below; reducer.apply_action()
matches on them exhaustively. Each action may carry an action_id so repeated
deliveries of the same request are applied once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, kw_only=True)
class Action:
    """Base class for all actions."""

    action_id: str | None = None

    @property
    def name(self) -> str:
        """Action name used in logs and subscriber callbacks."""
        return type(self).__name__


# ==============================================================================
# Whole State / Runtime
# ==============================================================================


@dataclass(frozen=True, kw_only=True)
class SetState(Action):
    """Replace the whole state with an already migrated snapshot."""

    value: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class TodayPatch(Action):
    """Patch fields of the today runtime."""

    patch: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class LedgerAppend(Action):
    """Append one entry to the ledger."""

    entry: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class ProgressRebuild(Action):
    """Force a rebuild of every ledger-derived aggregate."""


@dataclass(frozen=True, kw_only=True)
class SettingsUpdate(Action):
    """Update settings; values are clamped into range."""

    patch: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class AppTick(Action):
    """Heartbeat marker; changes nothing but still publishes."""


# ==============================================================================
# Entities
# ==============================================================================


@dataclass(frozen=True, kw_only=True)
class TaskInstanceAdd(Action):
    instance: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class TaskInstanceEdit(Action):
    id: str
    patch: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class TaskInstanceDelete(Action):
    id: str


@dataclass(frozen=True, kw_only=True)
class TaskRuleAdd(Action):
    rule: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class TaskRuleEdit(Action):
    id: str
    patch: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class TaskRuleDelete(Action):
    """Delete a rule; instances already generated from it are kept."""

    id: str


@dataclass(frozen=True, kw_only=True)
class TaskRuleToggleActive(Action):
    id: str


@dataclass(frozen=True, kw_only=True)
class HabitAdd(Action):
    item: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class HabitEdit(Action):
    id: str
    patch: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class HabitDelete(Action):
    """Delete a habit; ledger history is untouched."""

    id: str


@dataclass(frozen=True, kw_only=True)
class HabitToggleActive(Action):
    id: str


@dataclass(frozen=True, kw_only=True)
class LibraryItemAdd(Action):
    item: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class LibraryItemEdit(Action):
    id: str
    patch: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class LibraryItemDelete(Action):
    id: str


@dataclass(frozen=True, kw_only=True)
class LibraryItemToggleActive(Action):
    id: str


# ==============================================================================
# Generated Content
# ==============================================================================


@dataclass(frozen=True, kw_only=True)
class AssignDailyChallenges(Action):
    """Store the challenge assignment for a day."""

    day: str
    challenge_ids: list[str] = field(default_factory=list)
    snapshot: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class SetWeeklyBoss(Action):
    """Install a freshly generated or rerolled boss."""

    boss: dict[str, Any]
