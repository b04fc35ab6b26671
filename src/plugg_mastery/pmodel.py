"""p-model: probability-of-mastery update rule.

Each attempt moves the estimate towards 1.0 (correct) or 0.0 (incorrect).
The step is a learning rate scaled by response time and by the distance left
to full mastery:

    time_factor = clamp(BASELINE_TIME_MS / time_spent_ms, 0.5, 2.0)
    rate        = max(MIN_LEARNING_RATE, BASE_LEARNING_RATE * time_factor * (1 - p))
    correct:    p' = p + rate * (1 - p)
    incorrect:  p' = p - rate * p * WRONG_PENALTY

Fast correct answers count for more than slow ones (a slow correct answer is
more likely a guess). Wrong answers are weighted by WRONG_PENALTY so a run of
lucky guesses cannot carry a skill to mastery.
"""

from __future__ import annotations

from .models import MasteryLevel

INITIAL_PROBABILITY = 0.5
MASTERY_THRESHOLD = 0.9
LEARNING_THRESHOLD = 0.6

BASE_LEARNING_RATE = 0.25
MIN_LEARNING_RATE = 0.12
BASELINE_TIME_MS = 10_000.0
MIN_TIME_FACTOR = 0.5
MAX_TIME_FACTOR = 2.0
WRONG_PENALTY = 1.5


def time_factor(
    time_spent_ms: float,
    *,
    baseline_ms: float = BASELINE_TIME_MS,
    min_factor: float = MIN_TIME_FACTOR,
    max_factor: float = MAX_TIME_FACTOR,
) -> float:
    """Speed multiplier for the learning rate; 10s is neutral."""
    if time_spent_ms <= 0:
        return max_factor
    return max(min_factor, min(max_factor, baseline_ms / time_spent_ms))


def learning_rate(
    p_mastery: float,
    time_spent_ms: float,
    *,
    base_rate: float = BASE_LEARNING_RATE,
    min_rate: float = MIN_LEARNING_RATE,
    baseline_ms: float = BASELINE_TIME_MS,
    min_factor: float = MIN_TIME_FACTOR,
    max_factor: float = MAX_TIME_FACTOR,
) -> float:
    factor = time_factor(
        time_spent_ms, baseline_ms=baseline_ms, min_factor=min_factor, max_factor=max_factor
    )
    return max(min_rate, base_rate * factor * (1 - p_mastery))


def update_probability(
    p_mastery: float,
    is_correct: bool,
    time_spent_ms: float,
    *,
    base_rate: float = BASE_LEARNING_RATE,
    min_rate: float = MIN_LEARNING_RATE,
    baseline_ms: float = BASELINE_TIME_MS,
    min_factor: float = MIN_TIME_FACTOR,
    max_factor: float = MAX_TIME_FACTOR,
    wrong_penalty: float = WRONG_PENALTY,
) -> float:
    p = max(0.0, min(1.0, p_mastery))
    rate = learning_rate(
        p,
        time_spent_ms,
        base_rate=base_rate,
        min_rate=min_rate,
        baseline_ms=baseline_ms,
        min_factor=min_factor,
        max_factor=max_factor,
    )
    if is_correct:
        p_new = p + rate * (1 - p)
    else:
        p_new = p - rate * p * wrong_penalty
    return max(0.0, min(1.0, p_new))


def is_mastered(p_mastery: float, *, threshold: float = MASTERY_THRESHOLD) -> bool:
    return p_mastery >= threshold


def mastery_level(
    p_mastery: float,
    *,
    mastery_threshold: float = MASTERY_THRESHOLD,
    learning_threshold: float = LEARNING_THRESHOLD,
) -> MasteryLevel:
    if p_mastery >= mastery_threshold:
        return "mastered"
    if p_mastery >= learning_threshold:
        return "learning"
    return "beginner"


def mastery_percentage(p_mastery: float) -> int:
    """Whole-number percentage, halves rounded up."""
    clamped = max(0.0, min(1.0, p_mastery))
    return int(clamped * 100 + 0.5)


__all__ = [
    "BASE_LEARNING_RATE",
    "BASELINE_TIME_MS",
    "INITIAL_PROBABILITY",
    "LEARNING_THRESHOLD",
    "MASTERY_THRESHOLD",
    "MAX_TIME_FACTOR",
    "MIN_LEARNING_RATE",
    "MIN_TIME_FACTOR",
    "WRONG_PENALTY",
    "is_mastered",
    "learning_rate",
    "mastery_level",
    "mastery_percentage",
    "time_factor",
    "update_probability",
]
