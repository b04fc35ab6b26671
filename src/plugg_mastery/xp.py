"""Experience points awarded from attempt outcomes."""

from __future__ import annotations

import math
import threading

from loguru import logger

from .models import Attempt, MasteryState, XPEvent, XPKind

XP_REWARDS: dict[XPKind, int] = {
    "mastery": 100,
    "streak": 50,
    "correct_streak": 25,
}
CORRECT_STREAK_LENGTH = 5
LONG_STREAK_LENGTH = 10


def level_for_xp(total_xp: int) -> int:
    """Level = floor(sqrt(xp / 100)) + 1."""
    return math.floor(math.sqrt(max(total_xp, 0) / 100)) + 1


class XPLedger:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: dict[str, list[XPEvent]] = {}
        self._correct_streaks: dict[str, int] = {}

    def record_attempt(
        self,
        attempt: Attempt,
        state: MasteryState,
        newly_mastered: bool,
    ) -> list[XPEvent]:
        """Update the correct-answer streak and return any XP awarded."""
        awarded: list[XPEvent] = []
        with self._lock:
            streak = self._correct_streaks.get(attempt.account_id, 0)
            streak = streak + 1 if attempt.is_correct else 0
            self._correct_streaks[attempt.account_id] = streak

            if newly_mastered:
                awarded.append(
                    self._award(attempt, "mastery", f"Mastered {state.skill_id}")
                )
            if streak and streak % LONG_STREAK_LENGTH == 0:
                awarded.append(
                    self._award(attempt, "streak", f"{LONG_STREAK_LENGTH} correct answers in a row")
                )
            elif streak and streak % CORRECT_STREAK_LENGTH == 0:
                awarded.append(
                    self._award(attempt, "correct_streak", f"{CORRECT_STREAK_LENGTH} correct answers in a row")
                )
        for event in awarded:
            logger.debug("Awarded {} XP to {} ({})", event.xp_awarded, event.account_id, event.kind)
        return awarded

    def _award(self, attempt: Attempt, kind: XPKind, description: str) -> XPEvent:
        event = XPEvent(
            account_id=attempt.account_id,
            kind=kind,
            xp_awarded=XP_REWARDS[kind],
            description=description,
            skill_id=attempt.skill_id,
            awarded_at=attempt.timestamp,
        )
        self._events.setdefault(attempt.account_id, []).append(event)
        return event

    def correct_streak(self, account_id: str) -> int:
        with self._lock:
            return self._correct_streaks.get(account_id, 0)

    def events(self, account_id: str) -> list[XPEvent]:
        with self._lock:
            return list(self._events.get(account_id, []))

    def erase_account(self, account_id: str) -> None:
        with self._lock:
            self._events.pop(account_id, None)
            self._correct_streaks.pop(account_id, None)

    def total_xp(self, account_id: str) -> int:
        return sum(event.xp_awarded for event in self.events(account_id))

    def level(self, account_id: str) -> int:
        return level_for_xp(self.total_xp(account_id))


__all__ = [
    "CORRECT_STREAK_LENGTH",
    "LONG_STREAK_LENGTH",
    "XPLedger",
    "XP_REWARDS",
    "level_for_xp",
]
