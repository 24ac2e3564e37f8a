import pytest

from errors import BusyError, OutOfOrderError, PrerequisiteError
from features.progress import ProgressController
from features.state import MemoryStateStore
from models.schemas import ContractResult, Stage, TokenTypeResult

CONTRACT = ContractResult(address="0xabc", chain="MATIC", id="dep-1", name="X")
TOKEN_TYPE = TokenTypeResult(id=7, creation_id="cr-1", name="X")


def test_fresh_controller_starts_at_stage_one() -> None:
    progress = ProgressController(MemoryStateStore())
    progress.load()
    assert progress.current_stage is Stage.CONTRACT
    assert progress.highest_stage_reached is Stage.CONTRACT
    assert not progress.busy
    assert progress.can_enter(Stage.CONTRACT)
    assert not progress.can_enter(Stage.TOKEN_TYPE)
    assert not progress.can_enter(Stage.MINT)


def test_advance_merges_result_and_unlocks_next_stage() -> None:
    progress = ProgressController(MemoryStateStore())
    progress.advance(Stage.CONTRACT, CONTRACT)

    assert progress.current_stage is Stage.TOKEN_TYPE
    assert progress.highest_stage_reached is Stage.TOKEN_TYPE
    assert progress.stage_data.contract.address == "0xabc"
    assert progress.can_enter(Stage.TOKEN_TYPE)
    assert progress.missing(Stage.MINT) == ["token_type.id"]

    progress.advance(Stage.TOKEN_TYPE, TOKEN_TYPE)
    assert progress.current_stage is Stage.MINT
    assert progress.can_enter(Stage.MINT)

    # stage 3 stays the last stage
    progress.advance(Stage.MINT, None)
    assert progress.current_stage is Stage.MINT


def test_advance_out_of_order_changes_nothing() -> None:
    progress = ProgressController(MemoryStateStore())
    with pytest.raises(OutOfOrderError):
        progress.advance(Stage.TOKEN_TYPE, TOKEN_TYPE)
    assert progress.current_stage is Stage.CONTRACT
    assert progress.stage_data.token_type is None


def test_require_reports_missing_data_before_order() -> None:
    progress = ProgressController(MemoryStateStore())
    with pytest.raises(PrerequisiteError) as exc_info:
        progress.require(Stage.MINT)
    assert "token_type.id" in str(exc_info.value)

    progress.advance(Stage.CONTRACT, CONTRACT)
    with pytest.raises(OutOfOrderError):
        progress.require(Stage.CONTRACT)
    progress.require(Stage.TOKEN_TYPE)


def test_claim_refuses_second_submission() -> None:
    progress = ProgressController(MemoryStateStore())
    claim = progress.claim()
    assert progress.busy
    with pytest.raises(BusyError):
        progress.claim()
    progress.release(claim)
    assert not progress.busy


def test_stale_claim_cannot_release_newer_one() -> None:
    progress = ProgressController(MemoryStateStore())
    old = progress.claim()
    progress.reset()
    new = progress.claim()

    progress.release(old)
    assert progress.busy
    progress.release(new)
    assert not progress.busy


def test_processing_releases_on_error() -> None:
    progress = ProgressController(MemoryStateStore())
    with pytest.raises(RuntimeError):
        with progress.processing():
            assert progress.busy
            raise RuntimeError("boom")
    assert not progress.busy


def test_restart_restores_stage_but_never_busy() -> None:
    store = MemoryStateStore()
    progress = ProgressController(store)
    progress.advance(Stage.CONTRACT, CONTRACT)
    progress.claim()

    restored = ProgressController(store)
    restored.load()
    assert restored.current_stage is Stage.TOKEN_TYPE
    assert restored.stage_data.contract == CONTRACT
    assert not restored.busy


def test_restart_falls_back_when_prerequisites_are_lost() -> None:
    store = MemoryStateStore()
    store.save("form-progress", {
        "current_stage": 3,
        "highest_stage_reached": 3,
        "stage_data": {"contract": CONTRACT.to_dict()},
        "busy": True,
    })
    progress = ProgressController(store)
    progress.load()

    assert progress.current_stage is Stage.TOKEN_TYPE
    assert progress.highest_stage_reached is Stage.MINT
    assert not progress.busy


def test_unreadable_record_starts_over() -> None:
    store = MemoryStateStore()
    store.save("form-progress", {"current_stage": 9})
    progress = ProgressController(store)
    progress.load()
    assert progress.current_stage is Stage.CONTRACT
    assert progress.stage_data.contract is None


def test_reset_clears_stage_data() -> None:
    store = MemoryStateStore()
    progress = ProgressController(store)
    progress.advance(Stage.CONTRACT, CONTRACT)
    progress.advance(Stage.TOKEN_TYPE, TOKEN_TYPE)
    progress.reset()

    restored = ProgressController(store)
    restored.load()
    assert restored.current_stage is Stage.CONTRACT
    assert restored.highest_stage_reached is Stage.CONTRACT
    assert restored.stage_data.contract is None
    assert restored.stage_data.token_type is None


def test_go_to_moves_back_to_a_reached_stage() -> None:
    store = MemoryStateStore()
    progress = ProgressController(store)
    progress.advance(Stage.CONTRACT, CONTRACT)
    progress.advance(Stage.TOKEN_TYPE, TOKEN_TYPE)

    progress.go_to(Stage.TOKEN_TYPE)
    assert progress.current_stage is Stage.TOKEN_TYPE
    assert progress.highest_stage_reached is Stage.MINT
    # earlier results are kept so the user can move forward again
    assert progress.stage_data.token_type == TOKEN_TYPE

    progress.go_to(Stage.CONTRACT)
    progress.go_to(Stage.MINT)
    restored = ProgressController(store)
    restored.load()
    assert restored.current_stage is Stage.MINT


@pytest.mark.parametrize("stage", [0, 3, 4])
def test_go_to_unreached_stage_is_refused(stage) -> None:
    progress = ProgressController(MemoryStateStore())
    progress.advance(Stage.CONTRACT, CONTRACT)
    with pytest.raises(OutOfOrderError):
        progress.go_to(stage)
    assert progress.current_stage is Stage.TOKEN_TYPE


def test_go_to_while_busy_is_refused() -> None:
    progress = ProgressController(MemoryStateStore())
    progress.advance(Stage.CONTRACT, CONTRACT)
    with progress.processing():
        with pytest.raises(OutOfOrderError):
            progress.go_to(Stage.CONTRACT)
    assert progress.current_stage is Stage.TOKEN_TYPE
