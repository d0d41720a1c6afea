"""Pure logic engines for QuestLog.

Engines hold no state and import nothing from Home Assistant; managers and the
coordinator call them with plain data.
"""

from .award_engine import AwardEngine, InsufficientCoinsError, MintPlan, ReclaimPlan
from .boss_engine import BossEngine
from .challenge_engine import ChallengeEngine
from .ledger_engine import LedgerEngine, RebuildResult
from .rollover_engine import RolloverEngine

__all__ = [
    "AwardEngine",
    "BossEngine",
    "ChallengeEngine",
    "InsufficientCoinsError",
    "LedgerEngine",
    "MintPlan",
    "RebuildResult",
    "ReclaimPlan",
    "RolloverEngine",
]
