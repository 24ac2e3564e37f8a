"""
Transaction Ledger — the local record of every operation submitted to the
remote service and its last observed status.

Records are kept most-recent-first. The log is append-only: records are
inserted once as PENDING, updated by id when a poll reaches a terminal
status, and only ever removed by a full clear.

Every mutation is persisted immediately via the state store, so the history
survives restarts. If the store is unavailable the ledger keeps working
in memory (with a warning).
"""

from __future__ import annotations

import logging
from typing import Any

from errors import DuplicateIdError, InvalidTransitionError, NotFoundError
from features.ledger.models import OperationRecord, OperationStatus
from features.state.store import StateStore

log = logging.getLogger(__name__)


class TransactionLedger:
    """Ordered, persisted log of submitted operations."""

    def __init__(self, store: StateStore, name: str = "transaction-storage"):
        self.store = store
        self.name = name
        self._records: list[OperationRecord] = []

    # ── Persistence ───────────────────────────────────────────────────

    def load(self) -> None:
        """Restore the log from the state store."""
        data = self.store.load(self.name) or {}
        records = []
        for item in data.get("transactions", []):
            try:
                records.append(OperationRecord.from_dict(item))
            except (KeyError, ValueError) as e:
                log.warning("[LEDGER] Dropping malformed record %r: %s", item, e)
        self._records = records
        log.info("[LEDGER] Loaded %d records", len(self._records))

    def _persist(self) -> None:
        try:
            self.store.save(self.name, {"transactions": [r.to_dict() for r in self._records]})
        except Exception as e:
            log.warning("[LEDGER] Failed to persist ledger: %s", e)

    # ── Mutations ─────────────────────────────────────────────────────

    def append(self, record: OperationRecord) -> OperationRecord:
        """Insert a new record at the head of the log, always as PENDING."""
        if self._find(record.id) is not None:
            raise DuplicateIdError(f"operation {record.id} is already recorded")
        record.status = OperationStatus.PENDING
        self._records.insert(0, record)
        log.info("[LEDGER] Appended: %s — %s", record.id, record.kind.value)
        self._persist()
        return record

    def update(
        self,
        op_id: str,
        *,
        status: OperationStatus | None = None,
        payload: dict[str, Any] | None = None,
    ) -> OperationRecord:
        """Merge a status and/or payload patch into an existing record.

        Only PENDING → SUCCEEDED and PENDING → FAILED are accepted; a
        terminal status never changes again.
        """
        record = self._find(op_id)
        if record is None:
            raise NotFoundError(f"operation {op_id} is not recorded")

        if status is not None and status != record.status:
            if record.status.is_terminal:
                raise InvalidTransitionError(
                    f"operation {op_id} is {record.status.value}, cannot become {status.value}"
                )
            record.status = status
        if payload:
            record.payload = {**record.payload, **payload}

        log.info("[LEDGER] Updated: %s — %s", op_id, record.status.value)
        self._persist()
        return record

    def clear(self) -> None:
        """Empty the whole history."""
        count = len(self._records)
        self._records = []
        log.info("[LEDGER] Cleared %d records", count)
        self._persist()

    # ── Queries ───────────────────────────────────────────────────────

    def _find(self, op_id: str) -> OperationRecord | None:
        for record in self._records:
            if record.id == op_id:
                return record
        return None

    def get(self, op_id: str) -> OperationRecord:
        record = self._find(op_id)
        if record is None:
            raise NotFoundError(f"operation {op_id} is not recorded")
        return record

    def list(self) -> list[OperationRecord]:
        """All records, most recent first."""
        return list(self._records)

    def pending(self) -> list[OperationRecord]:
        return [r for r in self._records if r.status is OperationStatus.PENDING]

    def latest(self) -> OperationRecord | None:
        return self._records[0] if self._records else None

    def summary(self) -> dict:
        """Count records per status."""
        statuses: dict[str, int] = {}
        for r in self._records:
            statuses[r.status.value] = statuses.get(r.status.value, 0) + 1
        return {"total": len(self._records), "statuses": statuses}

    def __len__(self) -> int:
        return len(self._records)
