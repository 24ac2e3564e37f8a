from features.ledger import OperationKind, OperationRecord, OperationStatus
from features.progress import ProgressController
from features.state import MemoryStateStore
from models.schemas import ContractResult, Stage, TokenTypeResult
from utils.presenters import progress_view, record_view, token_metadata_view

IMAGE = "https://img.test/coin.png"
IMAGE_KEYS = ("image", "imagePreview", "imageThumbnail")


def test_metadata_view_fans_image_out_to_every_alias() -> None:
    view = token_metadata_view(IMAGE, {"name": "coin", "contract": {"address": "0xabc"}})

    assert all(view[key] == IMAGE for key in IMAGE_KEYS)
    assert view["contract"] == {"address": "0xabc", "image": IMAGE, "imageUrl": IMAGE, "image_url": IMAGE}
    assert view["name"] == "coin"


def test_metadata_view_does_not_touch_input() -> None:
    metadata = {"contract": {"address": "0xabc"}}
    token_metadata_view(IMAGE, metadata)
    assert metadata == {"contract": {"address": "0xabc"}}


def test_token_creation_record_view_carries_image_aliases() -> None:
    record = OperationRecord(
        id="cr-1", kind=OperationKind.TOKEN_CREATION,
        payload={"id": "cr-1", "image": IMAGE}, submitted_at="2026-01-01T00:00:00Z",
    )
    view = record_view(record)

    assert view["id"] == "cr-1"
    assert view["type"] == "TOKEN_CREATION"
    assert view["status"] == "PENDING"
    assert view["timestamp"] == "2026-01-01T00:00:00Z"
    assert all(view["data"]["metadata"][key] == IMAGE for key in IMAGE_KEYS)
    # the stored record keeps a single image
    assert "metadata" not in record.payload


def test_other_record_views_are_passed_through() -> None:
    record = OperationRecord(
        id="m-1", kind=OperationKind.TOKEN_MINT, status=OperationStatus.SUCCEEDED,
        payload={"tokenTypeId": 7},
    )
    assert record_view(record)["data"] == {"tokenTypeId": 7}


def test_progress_view_shape() -> None:
    progress = ProgressController(MemoryStateStore())
    progress.advance(Stage.CONTRACT, ContractResult(address="0xabc", chain="MATIC", image=IMAGE))
    progress.advance(Stage.TOKEN_TYPE, TokenTypeResult(id=7, creation_id="cr-1", image=IMAGE))

    view = progress_view(progress)

    assert view["currentStep"] == 3
    assert view["maxStep"] == 3
    assert view["isProcessing"] is False
    assert view["canEnter"] == {"1": True, "2": True, "3": True}
    assert view["formData"]["contractDeployment"]["address"] == "0xabc"
    token_type = view["formData"]["tokenType"]
    assert token_type["id"] == "cr-1"
    assert token_type["tokenTypeId"] == 7
    assert token_type["metadata"]["imageThumbnail"] == IMAGE
