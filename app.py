"""
FastAPI application — REST API for Token Mint Pilot.

Endpoints:
  POST   /auth/login                — Store client credentials and issue a token
  POST   /auth/logout               — Forget credentials and reset progress
  GET    /auth/status               — Whether a valid token is held
  GET    /chains                    — Chains available for deployment
  POST   /contracts                 — Stage 1: deploy a contract
  POST   /token-types               — Stage 2: create a token type
  POST   /mints                     — Stage 3: mint tokens
  GET    /progress                  — Current stage and stage data
  POST   /progress/stage/{n}        — Go back to a stage already reached
  POST   /progress/reset            — Start a new workflow (history is kept)
  GET    /transactions              — Ledger, most recent first
  DELETE /transactions              — Clear the ledger
  POST   /transactions/{id}/check   — Re-poll a pending operation
  GET    /polls                     — Active poll sessions with attempt counters
  GET    /notifications             — Recent user-visible notifications
  GET    /health                    — Health check
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from errors import (
    AuthError,
    ContractViolation,
    InvalidRequestError,
    MintPilotError,
    NotFoundError,
    TransportError,
)
from models.schemas import ContractRequest, Destination, MintRequest, TokenTypeRequest
from utils.notify import FeedNotifier
from utils.presenters import progress_view, record_view
from workflows.pipeline import MintingWorkflow

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)

workflow: MintingWorkflow | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global workflow
    if workflow is None:
        workflow = MintingWorkflow.from_config()
    workflow.load()
    log.info("Workflow state loaded (stage %d, %d ledger records)",
             workflow.progress.current_stage, len(workflow.ledger))
    yield
    await workflow.close()


app = FastAPI(
    title="Token Mint Pilot",
    description="Contract deployment, token-type creation and minting with status polling",
    version="1.0.0",
    lifespan=lifespan,
)


def _workflow() -> MintingWorkflow:
    if workflow is None:
        raise HTTPException(status_code=503, detail="Workflow not initialized")
    return workflow


# ── Error mapping ─────────────────────────────────────────────────────

@app.exception_handler(MintPilotError)
async def handle_workflow_error(request: Request, exc: MintPilotError):
    if isinstance(exc, AuthError):
        status = 401
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, ContractViolation):
        status = 409
    elif isinstance(exc, InvalidRequestError):
        status = 422
    elif isinstance(exc, TransportError):
        status = 502
    else:
        status = 500
    log.warning("%s %s → %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})


# ── Request models ────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)


class ContractBody(BaseModel):
    name: str = Field(min_length=1)
    chain: str = Field(min_length=1)
    description: str = ""
    image: str = ""
    external_url: str = ""


class TokenTypeBody(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    image: str = ""


class DestinationBody(BaseModel):
    address: str = Field(min_length=1)
    amount: int = Field(default=1, ge=1)


class MintBody(BaseModel):
    destinations: list[DestinationBody] = Field(min_length=1)


class SubmissionResponse(BaseModel):
    operation_id: str
    status: str = "PENDING"
    message: str


# ── Health ────────────────────────────────────────────────────────────

@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "token-mint-pilot",
        "authenticated": workflow is not None and workflow.auth.is_authenticated(),
    }


# ── Auth ──────────────────────────────────────────────────────────────

@app.post("/auth/login")
async def login(req: LoginRequest):
    await _workflow().login(req.client_id, req.client_secret)
    return {"authenticated": True}


@app.post("/auth/logout")
def logout():
    _workflow().logout()
    return {"authenticated": False}


@app.get("/auth/status")
def auth_status():
    wf = _workflow()
    return {
        "authenticated": wf.auth.is_authenticated(),
        "client_id": wf.auth.state.identity.client_id if wf.auth.state.identity else None,
        "expires_at": wf.auth.state.expires_at,
    }


# ── Stages ────────────────────────────────────────────────────────────

@app.get("/chains")
async def list_chains():
    return {"success": True, "result": await _workflow().list_chains()}


@app.post("/contracts", response_model=SubmissionResponse)
async def deploy_contract(body: ContractBody):
    op_id = await _workflow().deploy_contract(ContractRequest(**body.model_dump()))
    return SubmissionResponse(operation_id=op_id, message="Contract deployment initiated. Please wait...")


@app.post("/token-types", response_model=SubmissionResponse)
async def create_token_type(body: TokenTypeBody):
    op_id = await _workflow().create_token_type(TokenTypeRequest(**body.model_dump()))
    return SubmissionResponse(operation_id=op_id, message="Token type creation initiated. Please wait...")


@app.post("/mints", response_model=SubmissionResponse)
async def mint_tokens(body: MintBody):
    request = MintRequest(destinations=[Destination(d.address, d.amount) for d in body.destinations])
    op_id = await _workflow().mint(request)
    return SubmissionResponse(operation_id=op_id, message="Token mint initiated. Please wait...")


# ── Progress ──────────────────────────────────────────────────────────

@app.get("/progress")
def get_progress():
    return progress_view(_workflow().progress)


@app.post("/progress/stage/{stage}")
def go_to_stage(stage: int):
    wf = _workflow()
    wf.go_to_stage(stage)
    return progress_view(wf.progress)


@app.post("/progress/reset")
def reset_progress():
    wf = _workflow()
    wf.reset()
    return progress_view(wf.progress)


# ── Transactions ──────────────────────────────────────────────────────

@app.get("/transactions")
def list_transactions(status: str | None = None):
    wf = _workflow()
    records = wf.ledger.list()
    if status:
        records = [r for r in records if r.status.value == status.upper()]
    return {"transactions": [record_view(r) for r in records], "summary": wf.ledger.summary()}


@app.delete("/transactions")
def clear_transactions():
    _workflow().clear_history()
    return {"transactions": []}


@app.post("/transactions/{op_id}/check")
async def check_transaction(op_id: str):
    wf = _workflow()
    outcome = await wf.recheck(op_id)
    return {
        "operation_id": op_id,
        "outcome": outcome.outcome.value,
        "attempts": outcome.attempts,
        "error": outcome.error,
        "transaction": record_view(wf.ledger.get(op_id)),
    }


@app.get("/polls")
def list_polls():
    return {"polls": _workflow().poll_sessions()}


@app.get("/notifications")
def list_notifications():
    notifier = _workflow().notifier
    if isinstance(notifier, FeedNotifier):
        return {"notifications": notifier.recent()}
    return {"notifications": []}
