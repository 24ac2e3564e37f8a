"""
Display adapters — shape core state for the UI layer.

The core keeps one canonical image per token type. The display layer
expects the same URL under several keys, so the fan-out happens here and
nowhere else.
"""

from __future__ import annotations

from typing import Any

from features.ledger import OperationKind, OperationRecord
from features.progress import ProgressController
from models.schemas import ContractResult, TokenTypeResult


def token_metadata_view(image: str, metadata: dict[str, Any] | None = None) -> dict:
    """Metadata with the image copied into every alias the display reads."""
    metadata = dict(metadata or {})
    contract = dict(metadata.get("contract") or {})
    contract.update({"image": image, "imageUrl": image, "image_url": image})
    metadata.update({
        "image": image,
        "imagePreview": image,
        "imageThumbnail": image,
        "contract": contract,
    })
    return metadata


def contract_view(contract: ContractResult) -> dict:
    return {
        "id": contract.id,
        "address": contract.address,
        "chain": contract.chain,
        "name": contract.name,
        "description": contract.description,
        "image": contract.image,
        "externalUrl": contract.external_url,
        "transactionHash": contract.transaction_hash,
    }


def token_type_view(token_type: TokenTypeResult) -> dict:
    return {
        "id": token_type.creation_id,
        "tokenTypeId": token_type.id,
        "name": token_type.name,
        "description": token_type.description,
        "metadata": token_metadata_view(token_type.image, token_type.metadata),
    }


def record_view(record: OperationRecord) -> dict:
    data = dict(record.payload)
    if record.kind is OperationKind.TOKEN_CREATION:
        image = (data.get("metadata") or {}).get("image") or data.get("image") or ""
        data["metadata"] = token_metadata_view(image, data.get("metadata"))
    return {
        "id": record.id,
        "type": record.kind.value,
        "status": record.status.value,
        "data": data,
        "timestamp": record.submitted_at,
    }


def progress_view(progress: ProgressController) -> dict:
    stage_data = progress.stage_data
    form_data: dict = {}
    if stage_data.contract:
        form_data["contractDeployment"] = contract_view(stage_data.contract)
    if stage_data.token_type:
        form_data["tokenType"] = token_type_view(stage_data.token_type)
    return {
        "currentStep": int(progress.current_stage),
        "maxStep": int(progress.highest_stage_reached),
        "formData": form_data,
        "isProcessing": progress.busy,
        "canEnter": {str(stage): progress.can_enter(stage) for stage in (1, 2, 3)},
    }
