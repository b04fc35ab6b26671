"""Tests for analytics.py: weakness ranking, streaks, accuracy."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from plugg_mastery.analytics import (
    accuracy_summary,
    rank_weak_skills,
    recent_error_pressure,
    recommended_actions,
    study_streak,
    weakness_level,
)
from plugg_mastery.models import Attempt, MasteryState

NOW = datetime(2024, 3, 10, 18, 0, tzinfo=timezone.utc)


def _state(skill: str, probability: float, attempts: int = 10, correct: int = 5) -> MasteryState:
    return MasteryState(
        account_id="acc-1",
        skill_id=skill,
        probability=probability,
        attempts=attempts,
        correct_attempts=correct,
        is_mastered=probability >= 0.9,
    )


def _attempt(skill: str, correct: bool, days_ago: float) -> Attempt:
    return Attempt(
        account_id="acc-1",
        skill_id=skill,
        is_correct=correct,
        time_spent_ms=5_000,
        timestamp=NOW - timedelta(days=days_ago),
    )


class TestRecentErrorPressure:
    def test_no_attempts(self):
        assert recent_error_pressure([], NOW) == (0.0, 0)

    def test_fresh_error_counts_fully(self):
        pressure, errors = recent_error_pressure([_attempt("a", False, 0)], NOW)
        assert pressure == pytest.approx(0.1)
        assert errors == 1

    def test_old_errors_fade(self):
        fresh, _ = recent_error_pressure([_attempt("a", False, 0)], NOW)
        week_old, _ = recent_error_pressure([_attempt("a", False, 7)], NOW)
        assert week_old == pytest.approx(fresh / 2)

    def test_only_newest_window_counts(self):
        history = [_attempt("a", False, (i + 1) / 24) for i in range(12)]
        history += [_attempt("a", True, 0.001 * i) for i in range(10)]
        pressure, errors = recent_error_pressure(history, NOW)
        assert errors == 0
        assert pressure == 0.0


class TestRankWeakSkills:
    def test_recent_errors_rank_higher_at_equal_probability(self):
        states = [_state("old-errors", 0.4), _state("new-errors", 0.4)]
        attempts = [_attempt("old-errors", False, 30), _attempt("new-errors", False, 0)]

        ranked = rank_weak_skills(states, attempts, now=NOW)

        assert [w.skill_id for w in ranked] == ["new-errors", "old-errors"]
        assert ranked[0].weakness_score == pytest.approx(0.7)
        assert ranked[0].level == "medium"
        assert ranked[0].recent_errors == 1
        assert ranked[0].last_attempt_at == NOW

    def test_lower_probability_ranks_higher(self):
        states = [_state("ok", 0.7), _state("poor", 0.2)]
        ranked = rank_weak_skills(states, [], now=NOW)
        assert [w.skill_id for w in ranked] == ["poor", "ok"]
        assert ranked[0].weakness_score == pytest.approx(0.8)

    def test_mastered_skills_excluded_and_limit_applied(self):
        states = [_state("done", 0.95), _state("a", 0.1), _state("b", 0.2), _state("c", 0.3), _state("d", 0.4)]
        ranked = rank_weak_skills(states, [], now=NOW)
        assert [w.skill_id for w in ranked] == ["a", "b", "c"]
        assert len(rank_weak_skills(states, [], now=NOW, limit=None)) == 4

    def test_no_data(self):
        assert rank_weak_skills([], [], now=NOW) == []


class TestLabels:
    def test_weakness_level(self):
        assert weakness_level(0.81) == "high"
        assert weakness_level(0.8) == "medium"
        assert weakness_level(0.51) == "medium"
        assert weakness_level(0.5) == "low"

    def test_recommended_actions_by_tier(self):
        assert recommended_actions(0.1)[0] == "Review the basic concepts"
        assert recommended_actions(0.4)[0] == "Go over the theory again"
        assert recommended_actions(0.55)[0] == "Focus on the harder problems"


class TestStudyStreak:
    def test_consecutive_days(self):
        activity = [NOW, NOW - timedelta(days=1), NOW - timedelta(days=1, hours=3), NOW - timedelta(days=2)]
        assert study_streak(activity, today=NOW.date()) == 3

    def test_gap_breaks_streak(self):
        activity = [NOW, NOW - timedelta(days=1), NOW - timedelta(days=3), NOW - timedelta(days=4)]
        assert study_streak(activity, today=NOW.date()) == 2

    def test_no_activity_today(self):
        activity = [NOW - timedelta(days=1), NOW - timedelta(days=2)]
        assert study_streak(activity, today=NOW.date()) == 0

    def test_accepts_dates(self):
        assert study_streak([date(2024, 3, 10), date(2024, 3, 9)], today=date(2024, 3, 10)) == 2

    def test_empty(self):
        assert study_streak([], today=NOW.date()) == 0


class TestAccuracySummary:
    def test_sums_across_skills(self):
        summary = accuracy_summary([_state("a", 0.95, 10, 7), _state("b", 0.4, 5, 3)])
        assert summary.total_attempts == 15
        assert summary.correct_attempts == 10
        assert summary.accuracy == pytest.approx(10 / 15)
        assert summary.skills_tracked == 2
        assert summary.skills_mastered == 1

    def test_no_data(self):
        summary = accuracy_summary([])
        assert summary.total_attempts == 0
        assert summary.accuracy == 0.0
