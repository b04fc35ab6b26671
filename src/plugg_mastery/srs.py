"""Spaced repetition scheduling for fact-recall skills.

SM-2 flavoured: successes grow the interval multiplicatively, a failure sends
the item back to the base interval. Intervals are in hours.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from loguru import logger

from .config import MasteryConfig
from .models import SpacedRepetitionItem, SpacedRepetitionStats, as_utc, utc_now
from .store import MasteryStore


@dataclass(frozen=True, slots=True)
class Bucket:
    name: str
    min_probability: float
    interval_hours: float


# Starting interval for a new item, picked from the learner's mastery estimate.
BUCKETS: tuple[Bucket, ...] = (
    Bucket("8 hours", 0.5, 8.0),
    Bucket("1 day", 0.6, 24.0),
    Bucket("3 days", 0.7, 72.0),
    Bucket("1 week", 0.8, 168.0),
    Bucket("3 weeks", 0.9, 504.0),
)


def bucket_for_probability(probability: float) -> Bucket:
    chosen = BUCKETS[0]
    for bucket in BUCKETS:
        if probability >= bucket.min_probability:
            chosen = bucket
    return chosen


def bucket_for_interval(interval_hours: float) -> Bucket | None:
    for bucket in BUCKETS:
        if abs(bucket.interval_hours - interval_hours) <= 1:
            return bucket
    return None


def growth_multiplier(repetitions: int, ease_factor: float, config: MasteryConfig) -> float:
    """Interval multiplier after the ``repetitions``-th consecutive success."""
    tiers = config.growth_tiers
    tier = tiers[min(max(repetitions, 1), len(tiers)) - 1]
    return max(1.0, tier * ease_factor / config.default_ease)


def new_item(
    account_id: str,
    skill_id: str,
    now: datetime,
    config: MasteryConfig,
    probability: float | None = None,
) -> SpacedRepetitionItem:
    interval = (
        config.base_interval_hours
        if probability is None
        else max(config.base_interval_hours, bucket_for_probability(probability).interval_hours)
    )
    return SpacedRepetitionItem(
        account_id=account_id,
        skill_id=skill_id,
        interval_hours=interval,
        repetitions=0,
        ease_factor=config.default_ease,
        next_review_at=as_utc(now) + timedelta(hours=interval),
        last_review_at=None,
    )


def schedule(
    item: SpacedRepetitionItem,
    was_correct: bool,
    now: datetime,
    config: MasteryConfig,
) -> SpacedRepetitionItem:
    """Apply one review outcome and return the updated copy."""
    normalized_now = as_utc(now)
    if was_correct:
        reps = item.repetitions + 1
        ease = min(config.max_ease, item.ease_factor + config.ease_increment)
        base = item.interval_hours if item.interval_hours > 0 else config.base_interval_hours
        interval = base * growth_multiplier(reps, ease, config)
    else:
        reps = 0
        ease = max(config.min_ease, item.ease_factor - config.ease_decrement)
        interval = config.base_interval_hours

    return replace(
        item,
        interval_hours=interval,
        repetitions=reps,
        ease_factor=ease,
        next_review_at=normalized_now + timedelta(hours=interval),
        last_review_at=normalized_now,
    )


class SpacedRepetitionScheduler:
    """Reads, schedules and writes review items through a store."""

    def __init__(self, store: MasteryStore, config: MasteryConfig | None = None) -> None:
        self.store = store
        self.config = config or MasteryConfig()

    def schedule(
        self,
        skill_id: str,
        account_id: str,
        was_correct: bool,
        *,
        now: datetime | None = None,
        probability: float | None = None,
    ) -> SpacedRepetitionItem:
        moment = as_utc(now or utc_now())
        item = self.store.get_review_item(account_id, skill_id)
        if item is None:
            item = new_item(account_id, skill_id, moment, self.config, probability)
        updated = schedule(item, was_correct, moment, self.config)
        self.store.put_review_item(updated)

        if not was_correct and item.repetitions > 0:
            logger.info(
                "Review streak reset for {}/{} after {} repetitions",
                account_id,
                skill_id,
                item.repetitions,
            )
        logger.debug(
            "Scheduled {}/{}: interval={:.1f}h reps={} ease={:.2f}",
            account_id,
            skill_id,
            updated.interval_hours,
            updated.repetitions,
            updated.ease_factor,
        )
        return updated

    def due_items(self, account_id: str, now: datetime | None = None) -> list[SpacedRepetitionItem]:
        moment = as_utc(now or utc_now())
        items = [item for item in self.store.list_review_items(account_id) if item.is_due(moment)]
        return sorted(items, key=lambda item: item.next_review_at)

    def items_due_soon(
        self,
        account_id: str,
        now: datetime | None = None,
        window_hours: float | None = None,
    ) -> list[SpacedRepetitionItem]:
        moment = as_utc(now or utc_now())
        horizon = moment + timedelta(hours=window_hours or self.config.due_soon_hours)
        items = [
            item
            for item in self.store.list_review_items(account_id)
            if moment < item.next_review_at <= horizon
        ]
        return sorted(items, key=lambda item: item.next_review_at)

    def apply_decay(self, account_id: str, now: datetime | None = None) -> int:
        """Shrink ease and interval of overdue items. Returns how many were touched."""
        moment = as_utc(now or utc_now())
        decayed = 0
        for item in self.store.list_review_items(account_id):
            if item.next_review_at >= moment:
                continue
            days_overdue = (moment - item.next_review_at).total_seconds() / 86_400
            factor = (1 - self.config.decay_rate_per_day) ** days_overdue
            self.store.put_review_item(
                replace(
                    item,
                    ease_factor=max(self.config.min_ease, item.ease_factor * factor),
                    interval_hours=max(
                        self.config.base_interval_hours,
                        item.interval_hours * self.config.decay_interval_factor,
                    ),
                )
            )
            decayed += 1
        if decayed:
            logger.debug("Decayed {} overdue review items for {}", decayed, account_id)
        return decayed

    def stats(self, account_id: str, now: datetime | None = None) -> SpacedRepetitionStats:
        moment = as_utc(now or utc_now())
        items = self.store.list_review_items(account_id)
        distribution = {bucket.name: 0 for bucket in BUCKETS}
        for item in items:
            bucket = bucket_for_interval(item.interval_hours)
            if bucket is not None:
                distribution[bucket.name] += 1
        total = len(items)
        return SpacedRepetitionStats(
            total_items=total,
            due_items=len(self.due_items(account_id, moment)),
            due_soon_items=len(self.items_due_soon(account_id, moment)),
            average_interval_hours=sum(i.interval_hours for i in items) / total if total else 0.0,
            average_ease_factor=sum(i.ease_factor for i in items) / total if total else 0.0,
            bucket_distribution=distribution,
        )

    def remove_item(self, skill_id: str, account_id: str) -> bool:
        return self.store.delete_review_item(account_id, skill_id)


__all__ = [
    "BUCKETS",
    "Bucket",
    "SpacedRepetitionScheduler",
    "bucket_for_interval",
    "bucket_for_probability",
    "growth_multiplier",
    "new_item",
    "schedule",
]
