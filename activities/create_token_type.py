"""
Activity: Token Type Creation — stage 2. Creates one token type on the
contract deployed in stage 1.
"""

from __future__ import annotations

import logging

from errors import PrerequisiteError, TransportError
from models.schemas import (
    OperationStatus,
    StageData,
    StatusSnapshot,
    Submission,
    TokenTypeRequest,
    TokenTypeResult,
)
from utils.api_client import LedgerApiClient

log = logging.getLogger(__name__)


async def submit_token_type_creation(
    client: LedgerApiClient, stage_data: StageData, request: TokenTypeRequest
) -> Submission:
    """Create a token type on the deployed contract. Returns the creation id."""
    contract = stage_data.contract
    if contract is None or not contract.address or not contract.chain:
        raise PrerequisiteError("contract deployment data is missing")

    # Default the artwork to the contract's image when none is given
    image = request.image or contract.image
    payload = {
        "chain": contract.chain,
        "contractAddress": contract.address,
        "creations": [
            {"name": request.name, "description": request.description, "image": image},
        ],
    }
    log.info("Creating token type %r on %s", request.name, contract.address)
    result = await client.create_token_type(payload)

    creations = result.get("creations") if isinstance(result, dict) else result
    if (not isinstance(creations, list) or not creations
            or not isinstance(creations[0], dict) or not creations[0].get("id")):
        raise TransportError("token type creation response missing creation id")
    creation = creations[0]
    return Submission(
        operation_id=str(creation["id"]),
        status=OperationStatus.from_remote(creation.get("status")),
        payload={**creation, "image": image},
    )


async def check_token_type_creation(client: LedgerApiClient, creation_id: str) -> StatusSnapshot:
    result = await client.get_token_type_creation(creation_id)
    if not isinstance(result, dict):
        raise TransportError(f"token type status for {creation_id} was not an object")
    return StatusSnapshot(status=OperationStatus.from_remote(result.get("status")), result=result)


def token_type_result(snapshot: StatusSnapshot) -> TokenTypeResult:
    """What minting needs: the numeric token type id."""
    result = TokenTypeResult.from_remote(snapshot.result)
    if result.id is None:
        raise TransportError(f"token type {result.creation_id} succeeded without a tokenTypeId")
    return result
