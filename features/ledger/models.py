"""
Data models for the transaction ledger.

OperationRecord is the ledger's unit: one asynchronous operation accepted by
the remote service, with its last observed status.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

log = logging.getLogger(__name__)


def utc_now_rfc3339() -> str:
    """Return the current UTC timestamp in RFC3339 form with trailing Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class OperationKind(str, Enum):
    CONTRACT_DEPLOYMENT = "CONTRACT_DEPLOYMENT"
    TOKEN_CREATION = "TOKEN_CREATION"
    TOKEN_MINT = "TOKEN_MINT"


class OperationStatus(str, Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not OperationStatus.PENDING

    @classmethod
    def from_remote(cls, value: Any) -> "OperationStatus":
        """Map a remote status string onto the single local vocabulary.

        Some remote paths report ``SUCCESS`` instead of ``SUCCEEDED``; both
        mean the same thing here. Anything unrecognised is non-terminal.
        """
        raw = str(value or "").strip().upper()
        if raw in ("SUCCEEDED", "SUCCESS"):
            return cls.SUCCEEDED
        if raw == "FAILED":
            return cls.FAILED
        if raw != "PENDING":
            log.warning("Unknown remote status %r, treating as PENDING", value)
        return cls.PENDING


@dataclass
class OperationRecord:
    """A single submitted operation tracked by the ledger."""
    id: str
    kind: OperationKind
    status: OperationStatus = OperationStatus.PENDING
    payload: dict = field(default_factory=dict)
    submitted_at: str = field(default_factory=utc_now_rfc3339)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "OperationRecord":
        return cls(
            id=str(data["id"]),
            kind=OperationKind(data["kind"]),
            status=OperationStatus(data.get("status", OperationStatus.PENDING.value)),
            payload=dict(data.get("payload") or {}),
            submitted_at=data.get("submitted_at") or utc_now_rfc3339(),
        )
