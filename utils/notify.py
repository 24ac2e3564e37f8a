"""
User-visible notification channel.

The workflow reports every outcome here; how it is shown (toast, CLI line,
API feed) is up to the consumer.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Protocol

from features.ledger.models import utc_now_rfc3339

log = logging.getLogger(__name__)

_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class Notification:
    level: str  # success, info, warning, error
    message: str
    operation_id: str | None = None
    created_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


class Notifier(Protocol):
    def notify(self, level: str, message: str, operation_id: str | None = None) -> None:
        ...


class LoggingNotifier:
    """Writes notifications to the log only."""

    def notify(self, level: str, message: str, operation_id: str | None = None) -> None:
        log.log(_LEVELS.get(level, logging.INFO), "[%s] %s", level.upper(), message)


class FeedNotifier(LoggingNotifier):
    """Logs and keeps the most recent notifications for display."""

    def __init__(self, backlog: int = 50):
        self.items: deque[Notification] = deque(maxlen=backlog)

    def notify(self, level: str, message: str, operation_id: str | None = None) -> None:
        super().notify(level, message, operation_id)
        self.items.appendleft(Notification(level, message, operation_id, utc_now_rfc3339()))

    def recent(self) -> list[dict]:
        return [n.to_dict() for n in self.items]
