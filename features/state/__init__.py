"""
State feature — persistence for the client-side state containers.

Public API:
    from features.state import StateStore, FileStateStore, create_store
"""

from __future__ import annotations

import logging

import config
from features.state.store import FileStateStore, MemoryStateStore, StateStore

log = logging.getLogger(__name__)


def create_store() -> StateStore:
    """Postgres when DATABASE_URL is configured, JSON files otherwise."""
    if config.DATABASE_URL:
        from features.state.db import PostgresStateStore

        store = PostgresStateStore(config.DATABASE_URL)
        store.init_db()
        log.info("Persisting client state to Postgres")
        return store
    log.info("Persisting client state to %s", config.STATE_DIR)
    return FileStateStore(config.STATE_DIR)


__all__ = ["FileStateStore", "MemoryStateStore", "StateStore", "create_store"]
