"""
Ledger feature — records the lifecycle of every submitted operation.

Public API:
    from features.ledger import TransactionLedger, OperationRecord
    from features.ledger import OperationKind, OperationStatus
"""

from features.ledger.ledger import TransactionLedger
from features.ledger.models import OperationKind, OperationRecord, OperationStatus

__all__ = ["OperationKind", "OperationRecord", "OperationStatus", "TransactionLedger"]
