"""Tests for store.py: both stores honour the same contract."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from plugg_mastery.engine import MasteryEngine
from plugg_mastery.errors import PersistenceError
from plugg_mastery.models import Attempt, MasteryState, SpacedRepetitionItem
from plugg_mastery.store import InMemoryStore, SQLiteStore

NOW = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    sqlite_store = SQLiteStore(tmp_path / "store.db")
    sqlite_store.init_db()
    return sqlite_store


def _state(skill: str = "algebra", account: str = "acc-1", **overrides) -> MasteryState:
    values = dict(
        account_id=account,
        skill_id=skill,
        probability=0.7,
        attempts=4,
        correct_attempts=3,
        is_mastered=False,
        last_attempt_at=NOW,
        updated_at=NOW,
        mastered_at=None,
    )
    values.update(overrides)
    return MasteryState(**values)


def _attempt(skill: str = "algebra", account: str = "acc-1", correct: bool = True, at: datetime = NOW) -> Attempt:
    return Attempt(account_id=account, skill_id=skill, is_correct=correct, time_spent_ms=4200, timestamp=at)


class TestMasteryStates:
    def test_missing_state_is_none(self, store):
        assert store.get_mastery_state("acc-1", "algebra") is None

    def test_put_and_get(self, store):
        state = _state()
        store.put_mastery_state(state)
        assert store.get_mastery_state("acc-1", "algebra") == state

    def test_put_overwrites(self, store):
        store.put_mastery_state(_state())
        store.put_mastery_state(_state(probability=0.95, is_mastered=True, mastered_at=NOW))
        fetched = store.get_mastery_state("acc-1", "algebra")
        assert fetched.probability == 0.95
        assert fetched.is_mastered is True
        assert fetched.mastered_at == NOW

    def test_list_is_per_account(self, store):
        store.put_mastery_state(_state("geometry"))
        store.put_mastery_state(_state("algebra"))
        store.put_mastery_state(_state("algebra", account="acc-2"))
        assert [s.skill_id for s in store.list_mastery_states("acc-1")] == ["algebra", "geometry"]


class TestAttempts:
    def test_record_attempt_writes_both(self, store):
        store.record_attempt(_attempt(), _state(attempts=1, correct_attempts=1))
        assert store.get_mastery_state("acc-1", "algebra").attempts == 1
        attempts = store.list_attempts("acc-1")
        assert len(attempts) == 1
        assert attempts[0].time_spent_ms == 4200
        assert attempts[0].timestamp == NOW

    def test_list_attempts_newest_first_with_filters(self, store):
        for minutes, skill in [(0, "algebra"), (5, "geometry"), (10, "algebra")]:
            store.record_attempt(_attempt(skill, at=NOW + timedelta(minutes=minutes)), _state(skill))

        newest = store.list_attempts("acc-1")
        assert [a.timestamp for a in newest] == [
            NOW + timedelta(minutes=10),
            NOW + timedelta(minutes=5),
            NOW,
        ]
        assert len(store.list_attempts("acc-1", skill_id="algebra")) == 2
        assert len(store.list_attempts("acc-1", limit=1)) == 1
        assert store.list_attempts("acc-2") == []


class TestReviewItems:
    def _item(self, skill: str = "vocab-1") -> SpacedRepetitionItem:
        return SpacedRepetitionItem(
            account_id="acc-1",
            skill_id=skill,
            interval_hours=16.64,
            repetitions=1,
            ease_factor=2.6,
            next_review_at=NOW + timedelta(hours=16),
            last_review_at=NOW,
        )

    def test_round_trip(self, store):
        item = self._item()
        store.put_review_item(item)
        assert store.get_review_item("acc-1", "vocab-1") == item
        assert store.list_review_items("acc-1") == [item]

    def test_delete(self, store):
        store.put_review_item(self._item())
        assert store.delete_review_item("acc-1", "vocab-1") is True
        assert store.delete_review_item("acc-1", "vocab-1") is False
        assert store.get_review_item("acc-1", "vocab-1") is None


def test_erase_account_removes_everything(store):
    store.record_attempt(_attempt(), _state())
    store.record_attempt(_attempt(account="acc-2"), _state(account="acc-2"))
    store.put_review_item(
        SpacedRepetitionItem(
            account_id="acc-1",
            skill_id="vocab-1",
            interval_hours=8.0,
            repetitions=0,
            ease_factor=2.5,
            next_review_at=NOW,
        )
    )

    store.erase_account("acc-1")

    assert store.list_mastery_states("acc-1") == []
    assert store.list_attempts("acc-1") == []
    assert store.list_review_items("acc-1") == []
    assert store.get_mastery_state("acc-2", "algebra") is not None


def test_sqlite_state_survives_reopen(tmp_path):
    path = tmp_path / "reopen.db"
    first = SQLiteStore(path)
    first.init_db()
    MasteryEngine(first).process_attempt(_attempt())

    reopened = SQLiteStore(path)
    state = reopened.get_mastery_state("acc-1", "algebra")
    assert state is not None
    assert state.attempts == 1


def test_sqlite_unreachable_raises_persistence_error(tmp_path):
    broken = SQLiteStore(tmp_path)  # a directory, not a database file

    with pytest.raises(PersistenceError):
        broken.get_mastery_state("acc-1", "algebra")
    with pytest.raises(PersistenceError):
        MasteryEngine(broken).process_attempt(_attempt())


def test_sqlite_missing_tables_raise_persistence_error(tmp_path):
    store = SQLiteStore(tmp_path / "empty.db")

    with pytest.raises(PersistenceError):
        store.list_mastery_states("acc-1")
