import json
from dataclasses import replace

import psycopg
import pytest

from luckydraw.backend.config import BackendSettings
from luckydraw.backend.errors import BackingStoreError
from luckydraw.backend.models import GameRules
from luckydraw.backend.state import build_initial_state
from luckydraw.backend.store import (
    SESSION_ROW_ID,
    InMemoryStateStore,
    PostgresStateStore,
    create_store,
)


def test_create_store_returns_postgres_store_when_database_url_present(settings: BackendSettings) -> None:
    with_url = replace(settings, database_url="postgresql://local")

    assert isinstance(create_store(with_url), PostgresStateStore)


def test_create_store_returns_in_memory_store_when_database_url_missing(settings: BackendSettings) -> None:
    assert isinstance(create_store(settings), InMemoryStateStore)


def test_in_memory_load_creates_and_persists_initial_state(rules: GameRules) -> None:
    store = InMemoryStateStore(rules=rules)
    assert store.raw_document() is None

    state = store.load()

    assert store.raw_document() is not None
    assert json.loads(store.raw_document()) == state
    assert store.load() == state


def test_in_memory_save_normalizes_before_writing(rules: GameRules) -> None:
    store = InMemoryStateStore(rules=rules)

    saved = store.save({"boxes": [{"id": 1, "openedBy": "Ánh"}], "drawLogs": "broken"})

    assert len(saved["boxes"]) == 18
    assert saved["boxes"][0]["openedBy"] is None
    assert json.loads(store.raw_document()) == saved


def test_in_memory_load_returns_independent_copies(rules: GameRules) -> None:
    store = InMemoryStateStore(rules=rules)
    first = store.load()
    first["drawLogs"].append({"member": "Ánh"})

    assert store.load()["drawLogs"] == []


def test_in_memory_write_lock_is_exclusive(rules: GameRules) -> None:
    store = InMemoryStateStore(rules=rules)

    with store.write_lock():
        assert store._lock.locked()
    assert not store._lock.locked()


class _FakeCursor:
    def __init__(self, connection: "_FakeConnection") -> None:
        self.connection = connection

    def execute(self, sql: str, params: tuple) -> None:
        if self.connection.fail_with is not None:
            raise self.connection.fail_with
        self.connection.commands.append((sql, params))
        if "DO NOTHING" in sql:
            if self.connection.competing_row is not None:
                self.connection.row = self.connection.competing_row
            if self.connection.row is None:
                self.connection.row = (json.loads(params[1]),)

    def fetchone(self) -> tuple | None:
        return self.connection.row

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _FakeConnection:
    def __init__(self) -> None:
        self.commands: list[tuple[str, tuple]] = []
        self.row: tuple | None = None
        self.fail_with: Exception | None = None
        self.competing_row: tuple | None = None
        self.commit_count = 0
        self.closed = False

    def cursor(self) -> _FakeCursor:
        return _FakeCursor(self)

    def execute(self, sql: str, params: tuple) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.commands.append((sql, params))

    def commit(self) -> None:
        self.commit_count += 1

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _PostgresStoreWithFakeConnection(PostgresStateStore):
    def __init__(self, rules: GameRules) -> None:
        super().__init__(database_url="postgresql://local", rules=rules)
        self.fake_connection = _FakeConnection()

    def _connect(self, autocommit: bool = False) -> _FakeConnection:
        return self.fake_connection


def test_postgres_load_self_heals_missing_row(rules: GameRules) -> None:
    store = _PostgresStoreWithFakeConnection(rules)

    state = store.load()

    commands = store.fake_connection.commands
    assert state["drawLogs"] == []
    assert "SELECT state FROM lucky_draw_state" in commands[0][0]
    assert "ON CONFLICT (id) DO NOTHING" in commands[1][0]
    assert commands[1][1][0] == SESSION_ROW_ID
    assert json.loads(commands[1][1][1]) == state
    assert "SELECT state FROM lucky_draw_state" in commands[2][0]
    assert store.fake_connection.commit_count == 2


def test_postgres_load_keeps_row_written_by_another_writer(rules: GameRules) -> None:
    store = _PostgresStoreWithFakeConnection(rules)
    drawn = build_initial_state(rules)
    drawn["boxes"][2].update(openedBy="Ánh", reward=20000)
    drawn["memberResults"]["Ánh"] = 20000
    drawn["drawLogs"] = [
        {"member": "Ánh", "boxId": 3, "reward": 20000, "timestamp": "2026-01-01T00:00:00+00:00"}
    ]
    store.fake_connection.competing_row = (drawn,)

    state = store.load()

    assert state["memberResults"]["Ánh"] == 20000
    assert [entry["boxId"] for entry in state["drawLogs"]] == [3]
    assert not any("DO UPDATE" in sql for sql, _ in store.fake_connection.commands)


def test_in_memory_load_does_not_replace_existing_row(rules: GameRules) -> None:
    store = InMemoryStateStore(rules=rules)
    drawn = store.save(build_initial_state(rules))
    before = store.raw_document()

    assert store.load() == drawn
    assert store.raw_document() == before


def test_postgres_load_normalizes_stored_row(rules: GameRules) -> None:
    store = _PostgresStoreWithFakeConnection(rules)
    stored = build_initial_state(rules)
    stored["boxes"] = stored["boxes"][:3]
    store.fake_connection.row = (stored,)

    state = store.load()

    assert len(state["boxes"]) == 18
    assert len(store.fake_connection.commands) == 1


def test_postgres_load_accepts_json_text(rules: GameRules) -> None:
    store = _PostgresStoreWithFakeConnection(rules)
    stored = build_initial_state(rules)
    store.fake_connection.row = (json.dumps(stored),)

    assert store.load() == stored


def test_postgres_save_wraps_driver_errors(rules: GameRules) -> None:
    store = _PostgresStoreWithFakeConnection(rules)
    store.fake_connection.fail_with = psycopg.OperationalError("connection refused")

    with pytest.raises(BackingStoreError):
        store.save(build_initial_state(rules))
    assert store.fake_connection.commit_count == 0


def test_postgres_write_lock_takes_and_releases_advisory_lock(rules: GameRules) -> None:
    store = _PostgresStoreWithFakeConnection(rules)

    with store.write_lock():
        assert "pg_advisory_lock" in store.fake_connection.commands[-1][0]

    assert "pg_advisory_unlock" in store.fake_connection.commands[-1][0]
    assert store.fake_connection.closed is True


def test_postgres_write_lock_closes_connection_when_lock_fails(rules: GameRules) -> None:
    store = _PostgresStoreWithFakeConnection(rules)
    store.fake_connection.fail_with = psycopg.OperationalError("lock timeout")

    with pytest.raises(BackingStoreError):
        with store.write_lock():
            pytest.fail("body must not run without the lock")

    assert store.fake_connection.closed is True
