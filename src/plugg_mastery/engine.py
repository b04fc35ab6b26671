"""Mastery engine: turns attempts into per-skill mastery state.

The engine owns no storage. It reads the prior state from the injected
store, applies the p-model update and writes the attempt plus the new state
back in one store call. If that write fails the new state is dropped and the
:class:`~plugg_mastery.errors.PersistenceError` reaches the caller.

Read-modify-write for one ``(account_id, skill_id)`` pair runs under a lock
keyed by that pair, so two threads answering the same skill cannot lose an
update through the engine. Different pairs never wait on each other.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import date, datetime

from loguru import logger

from . import analytics, pmodel
from .config import MasteryConfig
from .models import (
    AccuracySummary,
    Attempt,
    MasteryLevel,
    MasteryState,
    SpacedRepetitionItem,
    WeakSkill,
    utc_now,
)
from .policy import PolicyTable, load_policy_table
from .srs import SpacedRepetitionScheduler
from .store import MasteryStore
from .xp import XPLedger


@dataclass(slots=True)
class ReviewOutcome:
    state: MasteryState
    review: SpacedRepetitionItem | None


class _KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}

    def get(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def discard_account(self, account_id: str) -> None:
        with self._guard:
            for key in [key for key in self._locks if key[0] == account_id]:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class MasteryEngine:
    def __init__(
        self,
        store: MasteryStore,
        config: MasteryConfig | None = None,
        *,
        policy: PolicyTable | None = None,
        xp_ledger: XPLedger | None = None,
    ) -> None:
        self.store = store
        self.config = config or MasteryConfig()
        self.policy = policy or load_policy_table(self.config.policy_file)
        self.scheduler = SpacedRepetitionScheduler(store, self.config)
        self.xp_ledger = xp_ledger
        self._locks = _KeyedLocks()

    # ── Estimator ────────────────────────────────────────────────────────────

    def initial_state(self, account_id: str, skill_id: str) -> MasteryState:
        return MasteryState(
            account_id=account_id,
            skill_id=skill_id,
            probability=self.config.initial_probability,
        )

    def next_probability(self, probability: float, attempt: Attempt) -> float:
        cfg = self.config
        return pmodel.update_probability(
            probability,
            attempt.is_correct,
            attempt.time_spent_ms,
            base_rate=cfg.base_learning_rate,
            min_rate=cfg.min_learning_rate,
            baseline_ms=cfg.baseline_time_ms,
            min_factor=cfg.min_time_factor,
            max_factor=cfg.max_time_factor,
            wrong_penalty=cfg.wrong_penalty,
        )

    def process_attempt(self, attempt: Attempt) -> MasteryState:
        """Apply one attempt and return the stored state."""
        key = (attempt.account_id, attempt.skill_id)
        with self._locks.get(key):
            previous = self.store.get_mastery_state(*key)
            if previous is None:
                previous = self.initial_state(*key)

            probability = self.next_probability(previous.probability, attempt)
            mastered = pmodel.is_mastered(probability, threshold=self.config.mastery_threshold)
            newly_mastered = mastered and not previous.is_mastered
            state = replace(
                previous,
                probability=probability,
                attempts=previous.attempts + 1,
                correct_attempts=previous.correct_attempts + (1 if attempt.is_correct else 0),
                is_mastered=mastered,
                last_attempt_at=attempt.timestamp,
                updated_at=utc_now(),
                mastered_at=attempt.timestamp if newly_mastered else previous.mastered_at,
            )
            self.store.record_attempt(attempt, state)

        logger.debug(
            "Attempt {}/{} correct={} time={}ms: p {:.3f} -> {:.3f}",
            attempt.account_id,
            attempt.skill_id,
            attempt.is_correct,
            attempt.time_spent_ms,
            previous.probability,
            probability,
        )
        if newly_mastered:
            logger.info("Skill {} mastered by {} (p={:.3f})", attempt.skill_id, attempt.account_id, probability)
        if self.xp_ledger is not None:
            self.xp_ledger.record_attempt(attempt, state, newly_mastered)
        return replace(state)

    def get_mastery_state(self, skill_id: str, account_id: str) -> MasteryState | None:
        return self.store.get_mastery_state(account_id, skill_id)

    def get_mastery_level(self, skill_id: str, account_id: str) -> MasteryLevel:
        state = self.get_mastery_state(skill_id, account_id)
        if state is None:
            return "beginner"
        return pmodel.mastery_level(
            state.probability,
            mastery_threshold=self.config.mastery_threshold,
            learning_threshold=self.config.learning_threshold,
        )

    def get_mastery_percentage(self, skill_id: str, account_id: str) -> int:
        state = self.get_mastery_state(skill_id, account_id)
        if state is None:
            return 0
        return pmodel.mastery_percentage(state.probability)

    # ── Spaced repetition ────────────────────────────────────────────────────

    def should_use_spaced_repetition(self, skill_id: str, subject_id: str) -> bool:
        return self.policy.should_use_spaced_repetition(skill_id, subject_id)

    def schedule_spaced_repetition(
        self,
        skill_id: str,
        account_id: str,
        was_correct: bool,
        *,
        now: datetime | None = None,
    ) -> SpacedRepetitionItem:
        with self._locks.get((account_id, skill_id)):
            state = self.store.get_mastery_state(account_id, skill_id)
            return self.scheduler.schedule(
                skill_id,
                account_id,
                was_correct,
                now=now,
                probability=state.probability if state is not None else None,
            )

    def record_review(self, attempt: Attempt, subject_id: str) -> ReviewOutcome:
        """Process an attempt and, for spaced-repetition subjects, schedule the next review."""
        state = self.process_attempt(attempt)
        review = None
        if self.should_use_spaced_repetition(attempt.skill_id, subject_id):
            review = self.schedule_spaced_repetition(
                attempt.skill_id, attempt.account_id, attempt.is_correct, now=attempt.timestamp
            )
        return ReviewOutcome(state=state, review=review)

    # ── Reporting ────────────────────────────────────────────────────────────

    def weak_skills(
        self, account_id: str, *, limit: int | None = 3, now: datetime | None = None
    ) -> list[WeakSkill]:
        states = self.store.list_mastery_states(account_id)
        attempts = self.store.list_attempts(account_id)
        return analytics.rank_weak_skills(states, attempts, now=now, limit=limit, config=self.config)

    def study_streak(self, account_id: str, *, today: date | None = None) -> int:
        attempts = self.store.list_attempts(account_id)
        return analytics.study_streak((a.timestamp for a in attempts), today=today)

    def accuracy(self, account_id: str) -> AccuracySummary:
        return analytics.accuracy_summary(self.store.list_mastery_states(account_id))

    # ── Accounts ─────────────────────────────────────────────────────────────

    def erase_account(self, account_id: str) -> None:
        """Remove every trace of an account: stored rows, XP and per-skill locks."""

        self.store.erase_account(account_id)
        if self.xp_ledger is not None:
            self.xp_ledger.erase_account(account_id)
        self._locks.discard_account(account_id)
        logger.info("Erased account {}", account_id)


__all__ = ["MasteryEngine", "ReviewOutcome"]
