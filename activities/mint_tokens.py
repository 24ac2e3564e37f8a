"""
Activity: Mint Tokens — stage 3. Mints the stage-2 token type to one or
more destination addresses.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from errors import InvalidRequestError, PrerequisiteError, TransportError
from models.schemas import (
    MintRequest,
    MintResult,
    OperationStatus,
    StageData,
    StatusSnapshot,
    Submission,
)
from utils.api_client import LedgerApiClient

log = logging.getLogger(__name__)


def _mint_entry(result) -> dict | None:
    """The mint object in a submit response: the result itself or its first mint."""
    if isinstance(result, list):
        return _mint_entry(result[0]) if result else None
    if not isinstance(result, dict):
        return None
    if result.get("id"):
        return result
    mints = result.get("mints")
    if isinstance(mints, list) and mints:
        return _mint_entry(mints[0])
    return None


async def submit_mint(client: LedgerApiClient, stage_data: StageData, request: MintRequest) -> Submission:
    """Mint tokens of the created type. Returns the mint id."""
    contract = stage_data.contract
    token_type = stage_data.token_type
    if contract is None or token_type is None or token_type.id is None:
        raise PrerequisiteError("token type data is missing")
    if not request.destinations:
        raise InvalidRequestError("at least one destination is required")

    payload = {
        "contractAddress": contract.address,
        "chain": contract.chain,
        "tokenTypeId": token_type.id,
        "destinations": [asdict(d) for d in request.destinations],
    }
    total = sum(d.amount for d in request.destinations)
    log.info("Minting %d token(s) of type %s to %d destination(s)",
             total, token_type.id, len(request.destinations))
    result = await client.mint_tokens(payload)

    entry = _mint_entry(result)
    if entry is None:
        raise TransportError("mint response missing id")
    mint_id = str(entry["id"])
    return Submission(
        operation_id=mint_id,
        status=OperationStatus.from_remote(entry.get("status")),
        payload={**payload, "id": mint_id},
    )


async def check_mint(client: LedgerApiClient, mint_id: str) -> StatusSnapshot:
    result = await client.get_mint(mint_id)
    if not isinstance(result, dict):
        raise TransportError(f"mint status for {mint_id} was not an object")
    return StatusSnapshot(status=OperationStatus.from_remote(result.get("status")), result=result)


def mint_result(snapshot: StatusSnapshot) -> MintResult:
    return MintResult.from_remote(snapshot.result)
