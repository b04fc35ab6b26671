"""Mastery estimation and spaced repetition scheduling for study practice."""

from .config import MasteryConfig
from .engine import MasteryEngine, ReviewOutcome
from .errors import InvalidInputError, MasteryError, PersistenceError, PolicyConfigError
from .models import (
    AccuracySummary,
    Attempt,
    MasteryState,
    SpacedRepetitionItem,
    SpacedRepetitionStats,
    WeakSkill,
    XPEvent,
)
from .policy import PolicyTable, load_policy_table
from .srs import SpacedRepetitionScheduler
from .store import InMemoryStore, MasteryStore, SQLiteStore
from .xp import XPLedger

__all__ = [
    "AccuracySummary",
    "Attempt",
    "InMemoryStore",
    "InvalidInputError",
    "load_policy_table",
    "MasteryConfig",
    "MasteryEngine",
    "MasteryError",
    "MasteryState",
    "MasteryStore",
    "PersistenceError",
    "PolicyConfigError",
    "PolicyTable",
    "ReviewOutcome",
    "SpacedRepetitionItem",
    "SpacedRepetitionScheduler",
    "SpacedRepetitionStats",
    "SQLiteStore",
    "WeakSkill",
    "XPEvent",
    "XPLedger",
]
