"""
Activity: Contract Deployment — stage 1. Deploys an ERC-1155 contract and
reports its deployment status.
"""

from __future__ import annotations

import logging

from errors import TransportError
from models.schemas import (
    ContractRequest,
    ContractResult,
    OperationStatus,
    StageData,
    StatusSnapshot,
    Submission,
)
from utils.api_client import LedgerApiClient

log = logging.getLogger(__name__)


async def submit_contract_deployment(
    client: LedgerApiClient, stage_data: StageData, request: ContractRequest
) -> Submission:
    """Ask the remote service to deploy a contract. Returns the deployment id."""
    log.info("Deploying contract %r on %s", request.name, request.chain)
    result = await client.deploy_contract(request.to_remote())
    deployment_id = result.get("id") if isinstance(result, dict) else None
    if not deployment_id:
        raise TransportError("deployment response missing id")
    return Submission(
        operation_id=str(deployment_id),
        status=OperationStatus.from_remote(result.get("status")),
        payload=result,
    )


async def check_contract_deployment(client: LedgerApiClient, deployment_id: str) -> StatusSnapshot:
    result = await client.get_contract_deployment(deployment_id)
    if not isinstance(result, dict):
        raise TransportError(f"deployment status for {deployment_id} was not an object")
    return StatusSnapshot(status=OperationStatus.from_remote(result.get("status")), result=result)


def contract_result(snapshot: StatusSnapshot) -> ContractResult:
    """What token-type creation needs: the deployed address and its chain."""
    return ContractResult.from_remote(snapshot.result)
