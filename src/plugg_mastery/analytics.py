"""Reporting views over stored mastery states and attempt history.

Nothing here writes; callers pass in the records they read from a store.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from .config import MasteryConfig
from .models import AccuracySummary, Attempt, MasteryState, WeakSkill, WeaknessLevel, as_utc, utc_now

HIGH_WEAKNESS = 0.8
MEDIUM_WEAKNESS = 0.5


def recent_error_pressure(
    attempts: Sequence[Attempt],
    now: datetime,
    *,
    window: int = 10,
    half_life_days: float = 7.0,
) -> tuple[float, int]:
    """Recency-weighted error rate over the newest ``window`` attempts.

    Each incorrect attempt contributes ``0.5 ** (age_days / half_life_days)``;
    the sum is divided by ``window`` so the result stays in [0, 1]. Returns
    the pressure and the raw count of errors in the window.
    """
    if window <= 0:
        return 0.0, 0
    moment = as_utc(now)
    newest = sorted(attempts, key=lambda a: a.timestamp, reverse=True)[:window]
    pressure = 0.0
    errors = 0
    for attempt in newest:
        if attempt.is_correct:
            continue
        errors += 1
        age_days = max(0.0, (moment - attempt.timestamp).total_seconds() / 86_400)
        pressure += 0.5 ** (age_days / half_life_days)
    return pressure / window, errors


def weakness_level(score: float) -> WeaknessLevel:
    if score > HIGH_WEAKNESS:
        return "high"
    if score > MEDIUM_WEAKNESS:
        return "medium"
    return "low"


def recommended_actions(probability: float) -> list[str]:
    if probability < 0.3:
        return [
            "Review the basic concepts",
            "Practise with easy exercises",
            "Ask the tutor for help",
        ]
    if probability < 0.5:
        return [
            "Go over the theory again",
            "Practise medium-difficulty problems",
            "Use flashcards",
        ]
    return [
        "Focus on the harder problems",
        "Discuss with classmates",
        "Ask your teacher for help",
    ]


def rank_weak_skills(
    states: Iterable[MasteryState],
    attempts: Iterable[Attempt],
    *,
    now: datetime | None = None,
    limit: int | None = 3,
    config: MasteryConfig | None = None,
) -> list[WeakSkill]:
    """Non-mastered skills ordered weakest first."""
    cfg = config or MasteryConfig()
    moment = as_utc(now or utc_now())

    by_skill: dict[str, list[Attempt]] = defaultdict(list)
    for attempt in attempts:
        by_skill[attempt.skill_id].append(attempt)

    ranked: list[WeakSkill] = []
    for state in states:
        if state.is_mastered:
            continue
        history = by_skill.get(state.skill_id, [])
        pressure, errors = recent_error_pressure(
            history,
            moment,
            window=cfg.recent_attempt_window,
            half_life_days=cfg.error_half_life_days,
        )
        score = (1 - state.probability) + cfg.error_weight * pressure
        last_attempt = max((a.timestamp for a in history), default=state.last_attempt_at)
        ranked.append(
            WeakSkill(
                skill_id=state.skill_id,
                probability=state.probability,
                weakness_score=score,
                recent_errors=errors,
                last_attempt_at=last_attempt,
                level=weakness_level(score),
                recommended_actions=recommended_actions(state.probability),
            )
        )

    ranked.sort(key=lambda weak: (-weak.weakness_score, weak.skill_id))
    return ranked if limit is None else ranked[:limit]


def study_streak(activity: Iterable[datetime | date], *, today: date | None = None) -> int:
    """Consecutive calendar days with activity, counted back from ``today``.

    Timestamps are bucketed by their UTC date. No activity today means no
    streak.
    """
    days: set[date] = set()
    for moment in activity:
        days.add(as_utc(moment).date() if isinstance(moment, datetime) else moment)
    current = today or utc_now().date()
    streak = 0
    while current in days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def accuracy_summary(states: Iterable[MasteryState]) -> AccuracySummary:
    total = 0
    correct = 0
    tracked = 0
    mastered = 0
    for state in states:
        tracked += 1
        total += state.attempts
        correct += state.correct_attempts
        if state.is_mastered:
            mastered += 1
    return AccuracySummary(
        total_attempts=total,
        correct_attempts=correct,
        accuracy=correct / total if total else 0.0,
        skills_tracked=tracked,
        skills_mastered=mastered,
    )


__all__ = [
    "HIGH_WEAKNESS",
    "MEDIUM_WEAKNESS",
    "accuracy_summary",
    "rank_weak_skills",
    "recent_error_pressure",
    "recommended_actions",
    "study_streak",
    "weakness_level",
]
