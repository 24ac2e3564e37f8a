"""
Stage drivers — one per workflow stage.

Each driver submits its operation, records it in the ledger as PENDING,
polls the matching status endpoint until a terminal status, mirrors the
outcome into the ledger and, on success, hands the stage product to the
progress controller so the next stage unlocks.

The busy flag is held from submission until tracking ends and is released
on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from errors import MintPilotError, PollTimeoutError
from features.ledger import OperationKind, OperationRecord, OperationStatus, TransactionLedger
from features.progress import ProgressController
from models.schemas import Stage, StageData, StatusSnapshot, Submission
from utils.api_client import LedgerApiClient
from utils.notify import LoggingNotifier, Notifier
from utils.polling import Poller

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageSpec:
    """Wiring of one stage to its activity functions."""
    stage: Stage
    kind: OperationKind
    title: str
    submit: Callable[[LedgerApiClient, StageData, Any], Awaitable[Submission]]
    check: Callable[[LedgerApiClient, str], Awaitable[StatusSnapshot]]
    extract: Callable[[StatusSnapshot], Any]
    # last stage: start a fresh workflow once it succeeds
    reset_on_success: bool = False


class TrackOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass
class StageOutcome:
    operation_id: str
    outcome: TrackOutcome
    result: Any = None
    error: str | None = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome is TrackOutcome.SUCCEEDED


class StageDriver:
    """Submit → record → poll → advance, for a single stage."""

    def __init__(
        self,
        spec: StageSpec,
        *,
        client: LedgerApiClient,
        ledger: TransactionLedger,
        progress: ProgressController,
        notifier: Notifier | None = None,
        interval: float = 5.0,
        max_attempts: int = 12,
    ):
        self.spec = spec
        self.client = client
        self.ledger = ledger
        self.progress = progress
        self.notifier = notifier or LoggingNotifier()
        self.interval = interval
        self.max_attempts = max_attempts
        self.pollers: dict[str, Poller] = {}

    @property
    def stage(self) -> Stage:
        return self.spec.stage

    # ── Submission ────────────────────────────────────────────────────

    def _refuse(self, e: MintPilotError) -> None:
        self.notifier.notify("error", f"{self.spec.title} could not be submitted: {e}")

    async def submit(self, request: Any) -> str:
        """Submit the operation and record it as PENDING. Returns its id."""
        try:
            self.progress.require(self.stage)
            submission = await self.spec.submit(self.client, self.progress.stage_data, request)
        except MintPilotError as e:
            self._refuse(e)
            raise

        op_id = submission.operation_id
        self.ledger.append(OperationRecord(id=op_id, kind=self.spec.kind, payload=submission.payload))
        self.notifier.notify("info", f"{self.spec.title} initiated. Please wait...", op_id)
        return op_id

    async def start(self, request: Any) -> tuple[str, asyncio.Task]:
        """Claim the busy flag, submit, and track in a background task."""
        try:
            self.progress.require(self.stage)
            claim = self.progress.claim()
        except MintPilotError as e:
            self._refuse(e)
            raise
        try:
            op_id = await self.submit(request)
        except BaseException:
            self.progress.release(claim)
            raise
        task = asyncio.create_task(self._track_and_release(op_id, claim), name=f"track-{op_id}")
        return op_id, task

    async def run(self, request: Any) -> StageOutcome:
        """Submit and wait for the terminal outcome."""
        _, task = await self.start(request)
        return await task

    async def _track_and_release(self, op_id: str, claim: int) -> StageOutcome:
        try:
            return await self.track_until_terminal(op_id)
        finally:
            self.progress.release(claim)

    # ── Tracking ──────────────────────────────────────────────────────

    def _on_result(self, op_id: str):
        def observe(session, snapshot: StatusSnapshot) -> None:
            log.info("%s %s: attempt %d/%d — %s", self.spec.title, op_id,
                     session.attempt, self.max_attempts, snapshot.status.value)
        return observe

    async def track_until_terminal(self, op_id: str) -> StageOutcome:
        """Poll the status endpoint and apply the terminal outcome."""
        title = self.spec.title
        poller = Poller(
            lambda: self.spec.check(self.client, op_id),
            is_terminal=lambda snapshot: snapshot.is_terminal,
            interval=self.interval,
            max_attempts=self.max_attempts,
            on_result=self._on_result(op_id),
            label=f"{self.spec.kind.value}:{op_id}",
        )
        self.pollers[op_id] = poller
        try:
            snapshot = await poller.run()
        except PollTimeoutError as e:
            # The remote operation may still complete; leave the record PENDING.
            self.notifier.notify(
                "warning", f"{title} timeout: still pending after {e.attempts} checks", op_id)
            return StageOutcome(op_id, TrackOutcome.TIMED_OUT, error=str(e), attempts=e.attempts)
        except MintPilotError as e:
            self.notifier.notify("error", f"Failed to check {title.lower()} status: {e}", op_id)
            return StageOutcome(op_id, TrackOutcome.ERRORED, error=str(e),
                                attempts=poller.session.attempt + 1)
        finally:
            self.pollers.pop(op_id, None)

        attempts = poller.session.attempt + 1
        if snapshot is None:
            return StageOutcome(op_id, TrackOutcome.CANCELLED, attempts=attempts)

        if snapshot.status is OperationStatus.FAILED:
            self.ledger.update(op_id, status=OperationStatus.FAILED, payload=snapshot.result)
            self.notifier.notify("error", f"{title} failed", op_id)
            return StageOutcome(op_id, TrackOutcome.FAILED, attempts=attempts)

        self.ledger.update(op_id, status=OperationStatus.SUCCEEDED, payload=snapshot.result)
        try:
            result = self.spec.extract(snapshot)
        except MintPilotError as e:
            self.notifier.notify("error", f"{title} succeeded with unusable data: {e}", op_id)
            return StageOutcome(op_id, TrackOutcome.ERRORED, error=str(e), attempts=attempts)

        self._advance(op_id, result)
        self.notifier.notify("success", f"{title} completed successfully!", op_id)
        return StageOutcome(op_id, TrackOutcome.SUCCEEDED, result=result, attempts=attempts)

    def _advance(self, op_id: str, result: Any) -> None:
        if self.progress.current_stage != self.stage:
            log.warning("Progress is at stage %d, not advancing stage %d for %s",
                        self.progress.current_stage, self.stage, op_id)
            return
        self.progress.advance(self.stage, result)
        if self.spec.reset_on_success:
            log.info("%s %s finished the workflow, starting over", self.spec.title, op_id)
            self.progress.reset()

    async def recheck(self, op_id: str) -> StageOutcome:
        """Manually re-poll a recorded operation, e.g. after a timeout."""
        record = self.ledger.get(op_id)
        if record.status.is_terminal:
            outcome = TrackOutcome.SUCCEEDED if record.status is OperationStatus.SUCCEEDED else TrackOutcome.FAILED
            return StageOutcome(op_id, outcome)
        with self.progress.processing():
            return await self.track_until_terminal(op_id)

    # ── Cancellation ──────────────────────────────────────────────────

    def cancel_all(self) -> None:
        for poller in list(self.pollers.values()):
            poller.cancel()

    def sessions(self) -> list[dict]:
        """Attempt counters of the runs currently polling."""
        rows = []
        for op_id, poller in self.pollers.items():
            last = poller.session.last_result
            rows.append({
                "operation_id": op_id,
                "kind": self.spec.kind.value,
                "attempt": poller.session.attempt,
                "max_attempts": self.max_attempts,
                "state": poller.session.state.value,
                "last_status": last.status.value if last is not None else None,
            })
        return rows
