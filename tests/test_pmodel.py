"""Tests for pmodel.py: update rule, time sensitivity, level buckets."""

from __future__ import annotations

import pytest

from plugg_mastery.pmodel import (
    INITIAL_PROBABILITY,
    MASTERY_THRESHOLD,
    is_mastered,
    learning_rate,
    mastery_level,
    mastery_percentage,
    time_factor,
    update_probability,
)


class TestTimeFactor:
    def test_baseline_is_neutral(self):
        assert time_factor(10_000) == pytest.approx(1.0)

    def test_fast_answers_capped(self):
        assert time_factor(2_000) == 2.0
        assert time_factor(0) == 2.0

    def test_slow_answers_floored(self):
        assert time_factor(60_000) == 0.5

    def test_minimum_learning_rate(self):
        # near mastery the (1 - p) term is tiny, the floor keeps updates meaningful
        assert learning_rate(0.99, 10_000) == pytest.approx(0.12)


class TestUpdateProbability:
    def test_fresh_fast_correct(self):
        p = update_probability(INITIAL_PROBABILITY, True, 2_000)
        assert p == pytest.approx(0.625)

    def test_correct_never_decreases(self):
        for p_init in [0.0, 0.1, 0.5, 0.89, 0.99, 1.0]:
            for ms in [0, 500, 10_000, 120_000]:
                assert update_probability(p_init, True, ms) >= p_init

    def test_incorrect_never_increases(self):
        for p_init in [0.0, 0.1, 0.5, 0.89, 0.99, 1.0]:
            for ms in [0, 500, 10_000, 120_000]:
                assert update_probability(p_init, False, ms) <= p_init

    def test_output_always_between_0_and_1(self):
        for p_init in [-0.2, 0.0, 0.3, 0.7, 1.0, 1.4]:
            for correct in [True, False]:
                result = update_probability(p_init, correct, 1_000)
                assert 0.0 <= result <= 1.0

    def test_faster_correct_moves_at_least_as_far(self):
        for p_init in [0.1, 0.5, 0.8, 0.95]:
            fast = update_probability(p_init, True, 2_000)
            slow = update_probability(p_init, True, 20_000)
            assert fast >= slow
        assert update_probability(0.5, True, 2_000) > update_probability(0.5, True, 20_000)

    def test_wrong_answers_weigh_more_than_right(self):
        p = 0.5
        gain = update_probability(p, True, 10_000) - p
        loss = p - update_probability(p, False, 10_000)
        assert loss > gain

    def test_wrong_answer_drops_out_of_mastery(self):
        p = update_probability(0.92, False, 10_000)
        assert p == pytest.approx(0.7544)
        assert not is_mastered(p)

    def test_repeated_correct_reaches_mastery(self):
        p = INITIAL_PROBABILITY
        for _ in range(20):
            p = update_probability(p, True, 10_000)
        assert p >= MASTERY_THRESHOLD

    def test_custom_penalty(self):
        harsh = update_probability(0.8, False, 10_000, wrong_penalty=2.0)
        mild = update_probability(0.8, False, 10_000, wrong_penalty=1.0)
        assert harsh < mild


class TestLevels:
    def test_is_mastered_threshold(self):
        assert is_mastered(MASTERY_THRESHOLD) is True
        assert is_mastered(MASTERY_THRESHOLD - 0.001) is False

    @pytest.mark.parametrize(
        ("p", "expected"),
        [
            (0.0, "beginner"),
            (0.59, "beginner"),
            (0.6, "learning"),
            (0.89, "learning"),
            (0.9, "mastered"),
            (1.0, "mastered"),
        ],
    )
    def test_mastery_level(self, p, expected):
        assert mastery_level(p) == expected

    def test_mastery_percentage_rounds(self):
        assert mastery_percentage(0.625) == 63
        assert mastery_percentage(0.994) == 99
        assert mastery_percentage(0.0) == 0
        assert mastery_percentage(1.0) == 100
