"""
Postgres backing store for persisted client state.

Table:
  client_state  — one row per logical state record (credentials, ledger,
                  progress), payload stored as JSONB

Every save is a single-row upsert, so each record is written atomically;
there is no transaction spanning records.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extras

log = logging.getLogger(__name__)

# ── Schema ────────────────────────────────────────────────────────────

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS client_state (
    name            TEXT PRIMARY KEY,
    payload         JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at      TIMESTAMPTZ DEFAULT now(),
    updated_at      TIMESTAMPTZ DEFAULT now()
);
"""


class PostgresStateStore:
    """StateStore backed by a single Postgres table."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self._conn: Any = None

    # ── Connection ────────────────────────────────────────────────────

    def _get_conn(self):
        """Get a Postgres connection (simple single-connection reuse)."""
        if self._conn is not None and not self._conn.closed:
            return self._conn
        conn = psycopg2.connect(self.dsn)
        conn.autocommit = True
        self._conn = conn
        return conn

    @contextmanager
    def get_cursor(self):
        """Yield a dict cursor."""
        conn = self._get_conn()
        cur = conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        try:
            yield cur
        finally:
            cur.close()

    def init_db(self) -> None:
        """Create the table if it doesn't exist."""
        try:
            with self.get_cursor() as cur:
                cur.execute(SCHEMA_SQL)
            log.info("State schema initialized")
        except psycopg2.Error as e:
            log.error("Failed to initialize state schema: %s", e)
            raise

    def close(self) -> None:
        if self._conn is not None and not self._conn.closed:
            self._conn.close()
        self._conn = None

    # ── StateStore ────────────────────────────────────────────────────

    def load(self, name: str) -> dict | None:
        with self.get_cursor() as cur:
            cur.execute("SELECT payload FROM client_state WHERE name = %s", (name,))
            row = cur.fetchone()
        if not row:
            return None
        payload = row["payload"]
        if isinstance(payload, str):
            payload = json.loads(payload)
        return payload

    def save(self, name: str, data: dict) -> None:
        with self.get_cursor() as cur:
            cur.execute("""
                INSERT INTO client_state (name, payload)
                VALUES (%(name)s, %(payload)s)
                ON CONFLICT (name) DO UPDATE SET
                    payload = EXCLUDED.payload,
                    updated_at = now()
            """, {
                "name": name,
                "payload": json.dumps(data, default=str),
            })

    def delete(self, name: str) -> None:
        with self.get_cursor() as cur:
            cur.execute("DELETE FROM client_state WHERE name = %s", (name,))
