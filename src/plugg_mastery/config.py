"""Engine configuration.

Every tunable lives on :class:`MasteryConfig`, which is passed explicitly to the
engine, scheduler and stores. Nothing here is global state; tests build their
own config with ``dataclasses.replace``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB_PATH = DATA_DIR / "plugg_mastery.db"

DB_PATH_ENV = "PLUGG_MASTERY_DB_PATH"
POLICY_FILE_ENV = "PLUGG_MASTERY_POLICY_FILE"
LOG_LEVEL_ENV = "PLUGG_MASTERY_LOG_LEVEL"


@dataclass(frozen=True, slots=True)
class MasteryConfig:
    # p-model
    initial_probability: float = 0.5
    mastery_threshold: float = 0.9
    learning_threshold: float = 0.6
    base_learning_rate: float = 0.25
    min_learning_rate: float = 0.12
    baseline_time_ms: float = 10_000.0
    min_time_factor: float = 0.5
    max_time_factor: float = 2.0
    wrong_penalty: float = 1.5

    # spaced repetition
    base_interval_hours: float = 8.0
    default_ease: float = 2.5
    min_ease: float = 1.3
    max_ease: float = 3.0
    ease_increment: float = 0.1
    ease_decrement: float = 0.2
    growth_tiers: tuple[float, ...] = (2.0, 2.25, 2.5)
    decay_rate_per_day: float = 0.02
    decay_interval_factor: float = 0.9
    due_soon_hours: float = 24.0

    # weakness ranking
    recent_attempt_window: int = 10
    error_half_life_days: float = 7.0
    error_weight: float = 1.0

    # collaborators
    db_path: Path = DEFAULT_DB_PATH
    policy_file: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "MasteryConfig":
        """Build a config from ``PLUGG_MASTERY_*`` environment variables."""
        env = os.environ if environ is None else environ
        policy_file = env.get(POLICY_FILE_ENV)
        return cls(
            db_path=Path(env.get(DB_PATH_ENV, DEFAULT_DB_PATH)),
            policy_file=Path(policy_file) if policy_file else None,
            log_level=env.get(LOG_LEVEL_ENV, "INFO").upper(),
        )


__all__ = [
    "DATA_DIR",
    "DB_PATH_ENV",
    "DEFAULT_DB_PATH",
    "LOG_LEVEL_ENV",
    "MasteryConfig",
    "POLICY_FILE_ENV",
]
