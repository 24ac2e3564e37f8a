"""
Workflow Progress Controller — which of the three stages is active, what
earlier stages produced, and whether a submission is in flight.

Stages are gated by data presence rather than by the step counter alone:
a stage can only be entered when every field it depends on exists in the
stage data. A restored progress record that lost its prerequisites falls
back instead of resuming at a stage that cannot run.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from errors import BusyError, OutOfOrderError, PrerequisiteError
from features.state.store import StateStore
from models.schemas import FIRST_STAGE, LAST_STAGE, Stage, StageData

log = logging.getLogger(__name__)

# stage → dotted stage_data fields it needs
PREREQUISITES: dict[Stage, tuple[str, ...]] = {
    Stage.CONTRACT: (),
    Stage.TOKEN_TYPE: ("contract.address", "contract.chain"),
    Stage.MINT: ("contract.address", "contract.chain", "token_type.id"),
}


def _has_field(stage_data: StageData, dotted: str) -> bool:
    owner_name, attr = dotted.split(".", 1)
    owner = getattr(stage_data, owner_name, None)
    if owner is None:
        return False
    value = getattr(owner, attr, None)
    return value is not None and value != ""


class ProgressController:
    """Persisted step-progress state machine."""

    def __init__(self, store: StateStore, name: str = "form-progress"):
        self.store = store
        self.name = name
        self.current_stage: Stage = FIRST_STAGE
        self.highest_stage_reached: Stage = FIRST_STAGE
        self.stage_data = StageData()
        self.busy = False
        self._claims = 0

    # ── Persistence ───────────────────────────────────────────────────

    def load(self) -> None:
        """Restore progress; busy is never restored since no task survives a restart."""
        data = self.store.load(self.name) or {}
        try:
            self.stage_data = StageData.from_dict(data.get("stage_data") or {})
            self.current_stage = Stage(data.get("current_stage", FIRST_STAGE))
            self.highest_stage_reached = Stage(data.get("highest_stage_reached", self.current_stage))
        except (TypeError, ValueError) as e:
            log.warning("Discarding unreadable progress record: %s", e)
            self._clear_state()
        self.busy = False

        # Walk back to the furthest stage whose prerequisites survived.
        while self.current_stage > FIRST_STAGE and not self.can_enter(self.current_stage):
            log.warning("Stage %d lost its prerequisites, falling back", self.current_stage)
            self.current_stage = Stage(self.current_stage - 1)
        self.highest_stage_reached = max(self.highest_stage_reached, self.current_stage)
        log.info("Progress restored at stage %d", self.current_stage)

    def _persist(self) -> None:
        try:
            self.store.save(self.name, self.to_dict())
        except Exception as e:
            log.warning("Failed to persist progress: %s", e)

    def to_dict(self) -> dict:
        return {
            "current_stage": int(self.current_stage),
            "highest_stage_reached": int(self.highest_stage_reached),
            "stage_data": self.stage_data.to_dict(),
            "busy": self.busy,
        }

    # ── Gating ────────────────────────────────────────────────────────

    def can_enter(self, stage: int) -> bool:
        return all(_has_field(self.stage_data, f) for f in PREREQUISITES[Stage(stage)])

    def missing(self, stage: int) -> list[str]:
        return [f for f in PREREQUISITES[Stage(stage)] if not _has_field(self.stage_data, f)]

    def require(self, stage: int) -> None:
        """Raise unless ``stage`` can run right now."""
        missing = self.missing(stage)
        if missing:
            raise PrerequisiteError(f"stage {stage} needs {', '.join(missing)}")
        if stage != self.current_stage:
            raise OutOfOrderError(f"stage {stage} is not active (current stage is {self.current_stage})")

    # ── Transitions ───────────────────────────────────────────────────

    def advance(self, stage: int, result: Any) -> None:
        """Record ``result`` for the active stage and unlock the next one."""
        if stage != self.current_stage:
            raise OutOfOrderError(f"cannot advance stage {stage} while stage {self.current_stage} is active")
        self.stage_data.merge(result)
        self.current_stage = Stage(min(stage + 1, LAST_STAGE))
        self.highest_stage_reached = max(self.highest_stage_reached, self.current_stage)
        log.info("Stage %d complete, current stage %d", stage, self.current_stage)
        self._persist()

    def go_to(self, stage: int) -> None:
        """Move back (or forward again) to a stage already reached."""
        if self.busy:
            raise OutOfOrderError("cannot change stage while a submission is in flight")
        if not FIRST_STAGE <= stage <= self.highest_stage_reached:
            raise OutOfOrderError(f"stage {stage} has not been reached (highest is {self.highest_stage_reached})")
        if not self.can_enter(stage):
            raise OutOfOrderError(f"stage {stage} needs {', '.join(self.missing(stage))}")
        self.current_stage = Stage(stage)
        log.info("Moved to stage %d", self.current_stage)
        self._persist()

    def set_busy(self, busy: bool) -> None:
        self.busy = busy
        self._persist()

    def claim(self) -> int:
        """Mark a submission as in flight, refusing a second one.

        Returns a claim number; only the matching release() clears the flag,
        so a run abandoned by reset() cannot release a newer claim.
        """
        if self.busy:
            raise BusyError("another submission is still in flight")
        self._claims += 1
        self.set_busy(True)
        return self._claims

    def release(self, claim: int) -> None:
        if self.busy and claim == self._claims:
            self.set_busy(False)

    @contextmanager
    def processing(self):
        """Hold the busy flag for the duration of the block."""
        claim = self.claim()
        try:
            yield self
        finally:
            self.release(claim)

    def _clear_state(self) -> None:
        self.current_stage = FIRST_STAGE
        self.highest_stage_reached = FIRST_STAGE
        self.stage_data = StageData()
        self.busy = False

    def reset(self) -> None:
        """Back to stage 1 with no stage data."""
        self._clear_state()
        log.info("Progress reset")
        self._persist()
