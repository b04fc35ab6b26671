"""Persistence for mastery states, attempt history and review items.

The engine only talks to the :class:`MasteryStore` protocol. Two stores ship
with the package: :class:`InMemoryStore` for tests and embedding, and
:class:`SQLiteStore` for a local database file. Store failures surface as
:class:`~plugg_mastery.errors.PersistenceError`.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

from loguru import logger

from .errors import PersistenceError
from .models import Attempt, MasteryState, SpacedRepetitionItem, as_utc


class MasteryStore(Protocol):
    def get_mastery_state(self, account_id: str, skill_id: str) -> MasteryState | None: ...

    def put_mastery_state(self, state: MasteryState) -> None: ...

    def record_attempt(self, attempt: Attempt, state: MasteryState) -> None:
        """Append the attempt and write the resulting state in one unit."""
        ...

    def list_mastery_states(self, account_id: str) -> list[MasteryState]: ...

    def list_attempts(
        self, account_id: str, skill_id: str | None = None, limit: int | None = None
    ) -> list[Attempt]:
        """Newest first."""
        ...

    def get_review_item(self, account_id: str, skill_id: str) -> SpacedRepetitionItem | None: ...

    def put_review_item(self, item: SpacedRepetitionItem) -> None: ...

    def list_review_items(self, account_id: str) -> list[SpacedRepetitionItem]: ...

    def delete_review_item(self, account_id: str, skill_id: str) -> bool: ...

    def erase_account(self, account_id: str) -> None: ...


# ── In-memory ────────────────────────────────────────────────────────────────


class InMemoryStore:
    """Dict-backed store. Returned records are copies."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._states: dict[tuple[str, str], MasteryState] = {}
        self._items: dict[tuple[str, str], SpacedRepetitionItem] = {}
        self._attempts: list[Attempt] = []

    def get_mastery_state(self, account_id: str, skill_id: str) -> MasteryState | None:
        with self._lock:
            state = self._states.get((account_id, skill_id))
            return replace(state) if state is not None else None

    def put_mastery_state(self, state: MasteryState) -> None:
        with self._lock:
            self._states[(state.account_id, state.skill_id)] = replace(state)

    def record_attempt(self, attempt: Attempt, state: MasteryState) -> None:
        with self._lock:
            self._attempts.append(attempt)
            self._states[(state.account_id, state.skill_id)] = replace(state)

    def list_mastery_states(self, account_id: str) -> list[MasteryState]:
        with self._lock:
            return [
                replace(state)
                for (account, _), state in sorted(self._states.items())
                if account == account_id
            ]

    def list_attempts(
        self, account_id: str, skill_id: str | None = None, limit: int | None = None
    ) -> list[Attempt]:
        with self._lock:
            matching = [
                attempt
                for attempt in self._attempts
                if attempt.account_id == account_id
                and (skill_id is None or attempt.skill_id == skill_id)
            ]
        # equal timestamps: later insert first
        ordered = sorted(enumerate(matching), key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        result = [attempt for _, attempt in ordered]
        return result[:limit] if limit is not None else result

    def get_review_item(self, account_id: str, skill_id: str) -> SpacedRepetitionItem | None:
        with self._lock:
            item = self._items.get((account_id, skill_id))
            return replace(item) if item is not None else None

    def put_review_item(self, item: SpacedRepetitionItem) -> None:
        with self._lock:
            self._items[(item.account_id, item.skill_id)] = replace(item)

    def list_review_items(self, account_id: str) -> list[SpacedRepetitionItem]:
        with self._lock:
            return [
                replace(item)
                for (account, _), item in sorted(self._items.items())
                if account == account_id
            ]

    def delete_review_item(self, account_id: str, skill_id: str) -> bool:
        with self._lock:
            return self._items.pop((account_id, skill_id), None) is not None

    def erase_account(self, account_id: str) -> None:
        with self._lock:
            self._states = {k: v for k, v in self._states.items() if k[0] != account_id}
            self._items = {k: v for k, v in self._items.items() if k[0] != account_id}
            self._attempts = [a for a in self._attempts if a.account_id != account_id]


# ── SQLite ───────────────────────────────────────────────────────────────────


def now_iso(value: datetime) -> str:
    return as_utc(value).isoformat(timespec="milliseconds")


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS mastery_states (
        account_id TEXT NOT NULL,
        skill_id TEXT NOT NULL,
        probability REAL NOT NULL,
        attempts INTEGER NOT NULL,
        correct_attempts INTEGER NOT NULL,
        is_mastered INTEGER NOT NULL,
        last_attempt_at TEXT,
        updated_at TEXT,
        mastered_at TEXT,
        PRIMARY KEY (account_id, skill_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS attempts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id TEXT NOT NULL,
        skill_id TEXT NOT NULL,
        item_id TEXT,
        is_correct INTEGER NOT NULL,
        time_spent_ms REAL NOT NULL,
        timestamp TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_attempts_account_skill ON attempts (account_id, skill_id, timestamp)",
    """
    CREATE TABLE IF NOT EXISTS review_items (
        account_id TEXT NOT NULL,
        skill_id TEXT NOT NULL,
        interval_hours REAL NOT NULL,
        repetitions INTEGER NOT NULL,
        ease_factor REAL NOT NULL,
        next_review_at TEXT NOT NULL,
        last_review_at TEXT,
        PRIMARY KEY (account_id, skill_id)
    )
    """,
)


class SQLiteStore:
    """Store backed by a SQLite file; one short-lived connection per call."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)

    def _open_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(self.db_path)
        connection.row_factory = sqlite3.Row
        return connection

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a transaction; sqlite errors become PersistenceError."""
        try:
            connection = self._open_connection()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Cannot open database {}: {}", self.db_path, exc)
            raise PersistenceError(f"Cannot open database {self.db_path}: {exc}") from exc
        try:
            with connection:
                yield connection
        except sqlite3.Error as exc:
            logger.warning("Database operation failed on {}: {}", self.db_path, exc)
            raise PersistenceError(f"Database operation failed: {exc}") from exc
        finally:
            connection.close()

    def init_db(self) -> None:
        """Create tables if they are missing."""
        with self._connect() as connection:
            for statement in _SCHEMA:
                connection.execute(statement)

    # mastery states

    def get_mastery_state(self, account_id: str, skill_id: str) -> MasteryState | None:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM mastery_states WHERE account_id = ? AND skill_id = ?",
                (account_id, skill_id),
            ).fetchone()
        return _row_to_state(row) if row is not None else None

    def put_mastery_state(self, state: MasteryState) -> None:
        with self._connect() as connection:
            _upsert_state(connection, state)

    def record_attempt(self, attempt: Attempt, state: MasteryState) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO attempts (account_id, skill_id, item_id, is_correct, time_spent_ms, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    attempt.account_id,
                    attempt.skill_id,
                    attempt.item_id,
                    int(attempt.is_correct),
                    float(attempt.time_spent_ms),
                    now_iso(attempt.timestamp),
                ),
            )
            _upsert_state(connection, state)

    def list_mastery_states(self, account_id: str) -> list[MasteryState]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT * FROM mastery_states WHERE account_id = ? ORDER BY skill_id",
                (account_id,),
            ).fetchall()
        return [_row_to_state(row) for row in rows]

    def list_attempts(
        self, account_id: str, skill_id: str | None = None, limit: int | None = None
    ) -> list[Attempt]:
        query = "SELECT * FROM attempts WHERE account_id = ?"
        params: list[Any] = [account_id]
        if skill_id is not None:
            query += " AND skill_id = ?"
            params.append(skill_id)
        query += " ORDER BY timestamp DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._connect() as connection:
            rows = connection.execute(query, params).fetchall()
        return [_row_to_attempt(row) for row in rows]

    # review items

    def get_review_item(self, account_id: str, skill_id: str) -> SpacedRepetitionItem | None:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM review_items WHERE account_id = ? AND skill_id = ?",
                (account_id, skill_id),
            ).fetchone()
        return _row_to_item(row) if row is not None else None

    def put_review_item(self, item: SpacedRepetitionItem) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO review_items (
                    account_id, skill_id, interval_hours, repetitions, ease_factor,
                    next_review_at, last_review_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (account_id, skill_id) DO UPDATE SET
                    interval_hours = excluded.interval_hours,
                    repetitions = excluded.repetitions,
                    ease_factor = excluded.ease_factor,
                    next_review_at = excluded.next_review_at,
                    last_review_at = excluded.last_review_at
                """,
                (
                    item.account_id,
                    item.skill_id,
                    item.interval_hours,
                    item.repetitions,
                    item.ease_factor,
                    now_iso(item.next_review_at),
                    now_iso(item.last_review_at) if item.last_review_at else None,
                ),
            )

    def list_review_items(self, account_id: str) -> list[SpacedRepetitionItem]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT * FROM review_items WHERE account_id = ? ORDER BY skill_id",
                (account_id,),
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    def delete_review_item(self, account_id: str, skill_id: str) -> bool:
        with self._connect() as connection:
            cursor = connection.execute(
                "DELETE FROM review_items WHERE account_id = ? AND skill_id = ?",
                (account_id, skill_id),
            )
            return cursor.rowcount > 0

    def erase_account(self, account_id: str) -> None:
        with self._connect() as connection:
            for table in ("attempts", "mastery_states", "review_items"):
                connection.execute(f"DELETE FROM {table} WHERE account_id = ?", (account_id,))
        logger.info("Erased stored progress for account {}", account_id)


def _upsert_state(connection: sqlite3.Connection, state: MasteryState) -> None:
    connection.execute(
        """
        INSERT INTO mastery_states (
            account_id, skill_id, probability, attempts, correct_attempts,
            is_mastered, last_attempt_at, updated_at, mastered_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (account_id, skill_id) DO UPDATE SET
            probability = excluded.probability,
            attempts = excluded.attempts,
            correct_attempts = excluded.correct_attempts,
            is_mastered = excluded.is_mastered,
            last_attempt_at = excluded.last_attempt_at,
            updated_at = excluded.updated_at,
            mastered_at = excluded.mastered_at
        """,
        (
            state.account_id,
            state.skill_id,
            state.probability,
            state.attempts,
            state.correct_attempts,
            int(state.is_mastered),
            now_iso(state.last_attempt_at) if state.last_attempt_at else None,
            now_iso(state.updated_at) if state.updated_at else None,
            now_iso(state.mastered_at) if state.mastered_at else None,
        ),
    )


def _row_to_state(row: sqlite3.Row) -> MasteryState:
    return MasteryState(
        account_id=str(row["account_id"]),
        skill_id=str(row["skill_id"]),
        probability=float(row["probability"]),
        attempts=int(row["attempts"]),
        correct_attempts=int(row["correct_attempts"]),
        is_mastered=bool(row["is_mastered"]),
        last_attempt_at=_parse_dt(row["last_attempt_at"]),
        updated_at=_parse_dt(row["updated_at"]),
        mastered_at=_parse_dt(row["mastered_at"]),
    )


def _row_to_attempt(row: sqlite3.Row) -> Attempt:
    return Attempt(
        account_id=str(row["account_id"]),
        skill_id=str(row["skill_id"]),
        is_correct=bool(row["is_correct"]),
        time_spent_ms=float(row["time_spent_ms"]),
        timestamp=_parse_dt(row["timestamp"]),
        item_id=str(row["item_id"]) if row["item_id"] is not None else None,
    )


def _row_to_item(row: sqlite3.Row) -> SpacedRepetitionItem:
    return SpacedRepetitionItem(
        account_id=str(row["account_id"]),
        skill_id=str(row["skill_id"]),
        interval_hours=float(row["interval_hours"]),
        repetitions=int(row["repetitions"]),
        ease_factor=float(row["ease_factor"]),
        next_review_at=_parse_dt(row["next_review_at"]),
        last_review_at=_parse_dt(row["last_review_at"]),
    )


__all__ = [
    "InMemoryStore",
    "MasteryStore",
    "SQLiteStore",
]
