"""Persistence interfaces and implementations for the shared session row."""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Protocol

from .config import BackendSettings
from .errors import BackingStoreError
from .models import GameRules
from .state import build_initial_state, normalize_state

logger = logging.getLogger(__name__)

SESSION_ROW_ID = "global"
TABLE_NAME = "lucky_draw_state"


class StateStore(Protocol):
    def load(self) -> dict[str, Any]:
        """Return the stored state, creating and persisting a fresh one when absent."""

    def save(self, state: dict[str, Any]) -> dict[str, Any]:
        """Normalize, upsert and return the persisted state."""

    def write_lock(self) -> Any:
        """Context manager serializing writers of the session row."""


@dataclass
class InMemoryStateStore:
    rules: GameRules

    def __post_init__(self) -> None:
        self._row: dict[str, Any] | None = None
        self._lock = threading.Lock()
        self._row_guard = threading.Lock()

    def _make_row(self, normalized: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": SESSION_ROW_ID,
            "state": json.dumps(normalized, ensure_ascii=False),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    def load(self) -> dict[str, Any]:
        if self._row is None:
            initial = self._make_row(normalize_state(build_initial_state(self.rules), self.rules))
            # create-only: a row written meanwhile by a draw or reset wins
            with self._row_guard:
                if self._row is None:
                    logger.info("No session state stored yet, creating a new session")
                    self._row = initial
        return normalize_state(json.loads(self._row["state"]), self.rules)

    def save(self, state: dict[str, Any]) -> dict[str, Any]:
        normalized = normalize_state(state, self.rules)
        with self._row_guard:
            self._row = self._make_row(normalized)
        return normalized

    def raw_document(self) -> str | None:
        """Return the stored JSON document exactly as persisted."""
        return None if self._row is None else self._row["state"]

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self._lock:
            yield


@dataclass
class PostgresStateStore:
    database_url: str
    rules: GameRules

    def _connect(self, autocommit: bool = False) -> Any:
        import psycopg

        return psycopg.connect(self.database_url, autocommit=autocommit)

    def _run(self, operation: str, work: Callable[[Any], Any]) -> Any:
        import psycopg

        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    result = work(cur)
                conn.commit()
        except psycopg.Error as exc:
            logger.exception("Backing store %s failed", operation)
            raise BackingStoreError("The game store is unavailable. Please try again.") from exc
        return result

    def load(self) -> dict[str, Any]:
        def select(cur: Any) -> Any:
            cur.execute(f"SELECT state FROM {TABLE_NAME} WHERE id = %s", (SESSION_ROW_ID,))
            return cur.fetchone()

        row = self._run("load", select)
        if row is None or row[0] is None:
            row = self._create_if_absent(build_initial_state(self.rules))

        state_json = row[0]
        state = state_json if isinstance(state_json, dict) else json.loads(state_json)
        return normalize_state(state, self.rules)

    def _create_if_absent(self, state: dict[str, Any]) -> Any:
        """Insert ``state`` only when no row exists, then return the stored row."""
        normalized = normalize_state(state, self.rules)

        def insert_then_select(cur: Any) -> Any:
            cur.execute(
                f"""
                INSERT INTO {TABLE_NAME} (id, state, updated_at)
                VALUES (%s, %s::jsonb, %s)
                ON CONFLICT (id) DO NOTHING
                """,
                (SESSION_ROW_ID, json.dumps(normalized, ensure_ascii=False), datetime.now(timezone.utc)),
            )
            cur.execute(f"SELECT state FROM {TABLE_NAME} WHERE id = %s", (SESSION_ROW_ID,))
            return cur.fetchone()

        logger.info("No session state stored yet, creating a new session")
        row = self._run("create", insert_then_select)
        if row is None or row[0] is None:
            raise BackingStoreError("The game store is unavailable. Please try again.")
        return row

    def save(self, state: dict[str, Any]) -> dict[str, Any]:
        normalized = normalize_state(state, self.rules)
        now = datetime.now(timezone.utc)

        def upsert(cur: Any) -> None:
            cur.execute(
                f"""
                INSERT INTO {TABLE_NAME} (id, state, updated_at)
                VALUES (%s, %s::jsonb, %s)
                ON CONFLICT (id) DO UPDATE
                SET state = EXCLUDED.state, updated_at = EXCLUDED.updated_at
                """,
                (SESSION_ROW_ID, json.dumps(normalized, ensure_ascii=False), now),
            )

        self._run("save", upsert)
        return normalized

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        """Hold a session-level advisory lock on the session row.

        Serializes writers across every server process sharing the database.
        """
        import psycopg

        conn = None
        try:
            conn = self._connect(autocommit=True)
            conn.execute("SELECT pg_advisory_lock(hashtext(%s))", (SESSION_ROW_ID,))
        except psycopg.Error as exc:
            if conn is not None:
                conn.close()
            logger.exception("Could not acquire the session write lock")
            raise BackingStoreError("The game store is unavailable. Please try again.") from exc
        try:
            yield
        finally:
            try:
                conn.execute("SELECT pg_advisory_unlock(hashtext(%s))", (SESSION_ROW_ID,))
            except psycopg.Error:
                logger.exception("Could not release the session write lock")
            finally:
                conn.close()


def create_store(settings: BackendSettings) -> StateStore:
    if settings.database_url:
        return PostgresStateStore(database_url=settings.database_url, rules=settings.rules)
    return InMemoryStateStore(rules=settings.rules)
