from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, cast

from .errors import InvalidInputError

MasteryLevel = Literal["beginner", "learning", "mastered"]
SchedulingPolicy = Literal["spaced_repetition", "mastery"]
WeaknessLevel = Literal["high", "medium", "low"]
XPKind = Literal["mastery", "streak", "correct_streak"]

MASTERY_LEVELS: tuple[MasteryLevel, ...] = ("beginner", "learning", "mastered")
SCHEDULING_POLICIES: tuple[SchedulingPolicy, ...] = ("spaced_repetition", "mastery")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Accept a datetime, an ISO 8601 string or epoch milliseconds.

    ``None`` means "now". A trailing ``Z`` is read as UTC.
    """

    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise InvalidInputError(f"timestamp must be a datetime, ISO string or epoch ms, got {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise InvalidInputError(f"timestamp is out of range: {value!r}") from exc
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidInputError(f"timestamp is not ISO 8601: {value!r}") from exc
    raise InvalidInputError(f"timestamp must be a datetime, ISO string or epoch ms, got {value!r}")


@dataclass(frozen=True, slots=True)
class Attempt:
    account_id: str
    skill_id: str
    is_correct: bool
    time_spent_ms: float
    timestamp: datetime = field(default_factory=utc_now)
    item_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.account_id, str) or not self.account_id.strip():
            raise InvalidInputError("attempt is missing account_id")
        if not isinstance(self.skill_id, str) or not self.skill_id.strip():
            raise InvalidInputError("attempt is missing skill_id")
        # rejects NaN and infinities as well as negatives
        if (
            self.time_spent_ms is None
            or not math.isfinite(self.time_spent_ms)
            or self.time_spent_ms < 0
        ):
            raise InvalidInputError(f"time_spent_ms must be a finite number >= 0, got {self.time_spent_ms!r}")
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Attempt":
        """Build an attempt from a request payload (camelCase or snake_case keys)."""

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in payload and payload[key] is not None:
                    return payload[key]
            return None

        account_id = pick("account_id", "accountId", "user_id", "userId")
        skill_id = pick("skill_id", "skillId")
        is_correct = pick("is_correct", "isCorrect")
        if is_correct is None:
            raise InvalidInputError("attempt is missing is_correct")
        if isinstance(is_correct, str):
            is_correct = is_correct.strip().lower() in {"1", "true", "yes"}
        time_spent = pick("time_spent_ms", "timeSpentMs", "timeSpent")
        try:
            time_spent_ms = float(time_spent) if time_spent is not None else 0.0
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"time_spent_ms is not a number: {time_spent!r}") from exc

        item_id = pick("item_id", "itemId")
        return cls(
            account_id=account_id if isinstance(account_id, str) else "",
            skill_id=skill_id if isinstance(skill_id, str) else "",
            is_correct=bool(is_correct),
            time_spent_ms=time_spent_ms,
            timestamp=parse_timestamp(pick("timestamp")),
            item_id=str(item_id) if item_id is not None else None,
        )


@dataclass(slots=True)
class MasteryState:
    account_id: str
    skill_id: str
    probability: float
    attempts: int = 0
    correct_attempts: int = 0
    is_mastered: bool = False
    last_attempt_at: datetime | None = None
    updated_at: datetime | None = None
    mastered_at: datetime | None = None

    @property
    def accuracy(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.correct_attempts / self.attempts


@dataclass(slots=True)
class SpacedRepetitionItem:
    account_id: str
    skill_id: str
    interval_hours: float
    repetitions: int
    ease_factor: float
    next_review_at: datetime
    last_review_at: datetime | None = None

    @property
    def id(self) -> str:
        return f"{self.account_id}-{self.skill_id}"

    def is_due(self, now: datetime) -> bool:
        return self.next_review_at <= as_utc(now)


@dataclass(slots=True)
class WeakSkill:
    skill_id: str
    probability: float
    weakness_score: float
    recent_errors: int
    last_attempt_at: datetime | None
    level: WeaknessLevel
    recommended_actions: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AccuracySummary:
    total_attempts: int
    correct_attempts: int
    accuracy: float
    skills_tracked: int
    skills_mastered: int


@dataclass(slots=True)
class SpacedRepetitionStats:
    total_items: int
    due_items: int
    due_soon_items: int
    average_interval_hours: float
    average_ease_factor: float
    bucket_distribution: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class XPEvent:
    account_id: str
    kind: XPKind
    xp_awarded: int
    description: str
    skill_id: str | None = None
    awarded_at: datetime = field(default_factory=utc_now)


def ensure_policy(value: str) -> SchedulingPolicy:
    """Normalise and validate a scheduling policy string."""

    normalized = value.strip().lower().replace("-", "_")
    if normalized not in SCHEDULING_POLICIES:
        raise ValueError(f"Unsupported scheduling policy: {value}")
    return cast(SchedulingPolicy, normalized)


__all__ = [
    "AccuracySummary",
    "as_utc",
    "Attempt",
    "ensure_policy",
    "MASTERY_LEVELS",
    "MasteryLevel",
    "MasteryState",
    "parse_timestamp",
    "SCHEDULING_POLICIES",
    "SchedulingPolicy",
    "SpacedRepetitionItem",
    "SpacedRepetitionStats",
    "utc_now",
    "WeakSkill",
    "WeaknessLevel",
    "XPEvent",
    "XPKind",
]
