import json

import pytest

import config
from features import state
from features.state import FileStateStore, MemoryStateStore, StateStore
from features.state import db


def test_file_store_roundtrip_and_delete(tmp_path) -> None:
    store = FileStateStore(tmp_path / "state")
    assert store.load("auth-storage") is None

    store.save("auth-storage", {"token": "abc", "expires_at": 12.5})
    assert store.load("auth-storage") == {"token": "abc", "expires_at": 12.5}
    assert (tmp_path / "state" / "auth-storage.json").exists()

    store.save("auth-storage", {"token": "def"})
    assert store.load("auth-storage") == {"token": "def"}

    store.delete("auth-storage")
    store.delete("auth-storage")
    assert store.load("auth-storage") is None


def test_file_store_leaves_no_temp_files(tmp_path) -> None:
    store = FileStateStore(tmp_path)
    for i in range(3):
        store.save("form-progress", {"current_stage": i})
    assert sorted(p.name for p in tmp_path.iterdir()) == ["form-progress.json"]


def test_file_store_failed_write_keeps_previous_version(tmp_path) -> None:
    store = FileStateStore(tmp_path)
    store.save("transaction-storage", {"transactions": []})

    with pytest.raises(TypeError):
        store.save("transaction-storage", {object(): 1})

    assert store.load("transaction-storage") == {"transactions": []}
    assert sorted(p.name for p in tmp_path.iterdir()) == ["transaction-storage.json"]


def test_file_store_ignores_corrupt_documents(tmp_path) -> None:
    (tmp_path / "form-progress.json").write_text("{not json")
    (tmp_path / "auth-storage.json").write_text("[1, 2]")
    store = FileStateStore(tmp_path)
    assert store.load("form-progress") is None
    assert store.load("auth-storage") is None


def test_stores_satisfy_protocol(tmp_path) -> None:
    assert isinstance(FileStateStore(tmp_path), StateStore)
    assert isinstance(MemoryStateStore(), StateStore)
    assert isinstance(db.PostgresStateStore("postgresql://x"), StateStore)


def test_memory_store_returns_copies() -> None:
    store = MemoryStateStore()
    data = {"items": [1]}
    store.save("x", data)
    data["items"].append(2)
    loaded = store.load("x")
    loaded["items"].append(3)
    assert store.load("x") == {"items": [1]}


def test_create_store_defaults_to_files(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(config, "DATABASE_URL", "")
    monkeypatch.setattr(config, "STATE_DIR", tmp_path)
    store = state.create_store()
    assert isinstance(store, FileStateStore)
    assert store.directory == tmp_path


# ── Postgres ──────────────────────────────────────────────────────────

class FakeCursor:
    def __init__(self, conn: "FakeConnection"):
        self.conn = conn
        self.row = None

    def execute(self, sql: str, params=None) -> None:
        self.conn.executed.append(" ".join(sql.split()))
        if sql.lstrip().startswith("SELECT"):
            payload = self.conn.rows.get(params[0])
            self.row = {"payload": payload} if payload is not None else None
        elif sql.lstrip().startswith("INSERT"):
            self.conn.rows[params["name"]] = params["payload"]
        elif sql.lstrip().startswith("DELETE"):
            self.conn.rows.pop(params[0], None)

    def fetchone(self):
        return self.row

    def close(self) -> None:
        pass


class FakeConnection:
    def __init__(self) -> None:
        self.closed = 0
        self.autocommit = False
        self.rows: dict[str, str] = {}
        self.executed: list[str] = []

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = 1


@pytest.fixture
def fake_pg(monkeypatch):
    connections: list[FakeConnection] = []

    def connect(dsn):
        conn = FakeConnection()
        connections.append(conn)
        return conn

    monkeypatch.setattr(db.psycopg2, "connect", connect)
    return connections


def test_postgres_store_upserts_json(fake_pg) -> None:
    store = db.PostgresStateStore("postgresql://localhost/mint")
    store.init_db()

    assert store.load("form-progress") is None
    store.save("form-progress", {"current_stage": 2})
    store.save("form-progress", {"current_stage": 3})
    assert store.load("form-progress") == {"current_stage": 3}

    conn = fake_pg[0]
    assert len(fake_pg) == 1
    assert conn.autocommit
    assert json.loads(conn.rows["form-progress"]) == {"current_stage": 3}
    assert any(sql.startswith("CREATE TABLE IF NOT EXISTS client_state") for sql in conn.executed)
    assert sum("ON CONFLICT (name) DO UPDATE" in sql for sql in conn.executed) == 2

    store.delete("form-progress")
    assert store.load("form-progress") is None


def test_postgres_store_reconnects_after_close(fake_pg) -> None:
    store = db.PostgresStateStore("postgresql://localhost/mint")
    store.load("auth-storage")
    store.close()
    assert fake_pg[0].closed
    store.load("auth-storage")
    assert len(fake_pg) == 2


def test_create_store_uses_postgres_when_configured(fake_pg, monkeypatch) -> None:
    monkeypatch.setattr(config, "DATABASE_URL", "postgresql://localhost/mint")
    store = state.create_store()
    assert isinstance(store, db.PostgresStateStore)
    assert fake_pg[0].executed[0].startswith("CREATE TABLE")
