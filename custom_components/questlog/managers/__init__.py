"""Stateful managers bound to the QuestLog coordinator."""

from .award_manager import AwardManager, AwardResult
from .base_manager import BaseManager
from .day_manager import DayManager

__all__ = [
    "AwardManager",
    "AwardResult",
    "BaseManager",
    "DayManager",
]
