"""
Minting Workflow

Orchestrates the three dependent stages against the remote ledger service:
  1. Deploy an ERC-1155 contract            → contract address + chain
  2. Create a token type on that contract   → token type id
  3. Mint tokens of that type to addresses

Each stage is accepted immediately by the remote service and completes
later; its driver polls until a terminal status. State lives in three
independently persisted containers (credentials, ledger, progress) that are
loaded once at start and passed explicitly to the drivers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import config
from activities.create_token_type import (
    check_token_type_creation,
    submit_token_type_creation,
    token_type_result,
)
from activities.deploy_contract import (
    check_contract_deployment,
    contract_result,
    submit_contract_deployment,
)
from activities.mint_tokens import check_mint, mint_result, submit_mint
from errors import NotFoundError
from features.auth import AuthSession
from features.ledger import OperationKind, TransactionLedger
from features.progress import ProgressController
from features.state import StateStore, create_store
from models.schemas import ContractRequest, MintRequest, Stage, TokenTypeRequest
from utils.api_client import LedgerApiClient, TokenEndpoint
from utils.notify import FeedNotifier, Notifier
from workflows.drivers import StageDriver, StageOutcome, StageSpec

log = logging.getLogger(__name__)

STAGE_SPECS = {
    Stage.CONTRACT: StageSpec(
        stage=Stage.CONTRACT,
        kind=OperationKind.CONTRACT_DEPLOYMENT,
        title="Contract deployment",
        submit=submit_contract_deployment,
        check=check_contract_deployment,
        extract=contract_result,
    ),
    Stage.TOKEN_TYPE: StageSpec(
        stage=Stage.TOKEN_TYPE,
        kind=OperationKind.TOKEN_CREATION,
        title="Token type creation",
        submit=submit_token_type_creation,
        check=check_token_type_creation,
        extract=token_type_result,
    ),
    Stage.MINT: StageSpec(
        stage=Stage.MINT,
        kind=OperationKind.TOKEN_MINT,
        title="Token mint",
        submit=submit_mint,
        check=check_mint,
        extract=mint_result,
        reset_on_success=True,
    ),
}


class MintingWorkflow:
    """Owns the state containers, the remote client and the stage drivers."""

    def __init__(
        self,
        *,
        auth: AuthSession,
        ledger: TransactionLedger,
        progress: ProgressController,
        client: LedgerApiClient,
        notifier: Notifier | None = None,
        interval: float = 5.0,
        max_attempts: int = 12,
        closers: list | None = None,
    ):
        self.auth = auth
        self.ledger = ledger
        self.progress = progress
        self.client = client
        self.notifier = notifier or FeedNotifier(config.NOTIFICATION_BACKLOG)
        self.drivers: dict[Stage, StageDriver] = {
            stage: StageDriver(
                spec,
                client=client,
                ledger=ledger,
                progress=progress,
                notifier=self.notifier,
                interval=interval,
                max_attempts=max_attempts,
            )
            for stage, spec in STAGE_SPECS.items()
        }
        self._tasks: set[asyncio.Task] = set()
        self._closers = closers or []

    @classmethod
    def from_config(cls, store: StateStore | None = None, **kwargs: Any) -> "MintingWorkflow":
        """Build the workflow from config.py settings."""
        store = store or create_store()
        token_endpoint = TokenEndpoint(transport=kwargs.pop("auth_transport", None))
        auth = AuthSession(
            store, token_endpoint,
            refresh_margin=config.TOKEN_REFRESH_MARGIN_SEC,
            name=config.AUTH_STATE_KEY,
        )
        client = LedgerApiClient(auth, transport=kwargs.pop("api_transport", None))
        return cls(
            auth=auth,
            ledger=TransactionLedger(store, name=config.LEDGER_STATE_KEY),
            progress=ProgressController(store, name=config.PROGRESS_STATE_KEY),
            client=client,
            interval=config.POLL_INTERVAL_SEC,
            max_attempts=config.POLL_MAX_ATTEMPTS,
            closers=[client.aclose, token_endpoint.aclose],
            **kwargs,
        )

    def load(self) -> None:
        """Restore all persisted state (process start)."""
        self.auth.load()
        self.ledger.load()
        self.progress.load()

    async def close(self) -> None:
        self.cancel_tracking()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        for close in self._closers:
            await close()

    # ── Auth ──────────────────────────────────────────────────────────

    async def login(self, client_id: str, client_secret: str) -> None:
        """Store credentials and issue the first token."""
        self.auth.set_identity(client_id, client_secret)
        try:
            await self.auth.acquire_token()
        except Exception:
            self.auth.clear()
            raise
        self.notifier.notify("success", "Authenticated")

    def logout(self) -> None:
        self.cancel_tracking()
        self.auth.clear()
        self.progress.reset()

    # ── Stages ────────────────────────────────────────────────────────

    async def list_chains(self) -> list[str]:
        return await self.client.list_chains()

    def _spawn(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def start_stage(self, stage: Stage, request: Any) -> str:
        """Submit a stage and keep tracking it in the background."""
        op_id, task = await self.drivers[stage].start(request)
        self._spawn(task)
        return op_id

    async def deploy_contract(self, request: ContractRequest) -> str:
        return await self.start_stage(Stage.CONTRACT, request)

    async def create_token_type(self, request: TokenTypeRequest) -> str:
        return await self.start_stage(Stage.TOKEN_TYPE, request)

    async def mint(self, request: MintRequest) -> str:
        return await self.start_stage(Stage.MINT, request)

    async def run_stage(self, stage: Stage, request: Any) -> StageOutcome:
        """Submit a stage and wait for its terminal outcome."""
        return await self.drivers[stage].run(request)

    def driver_for(self, kind: OperationKind) -> StageDriver:
        for driver in self.drivers.values():
            if driver.spec.kind is kind:
                return driver
        raise NotFoundError(f"no driver for {kind.value}")

    async def recheck(self, op_id: str) -> StageOutcome:
        """Re-poll a recorded operation by id."""
        record = self.ledger.get(op_id)
        return await self.driver_for(record.kind).recheck(op_id)

    # ── Reset / history ───────────────────────────────────────────────

    def cancel_tracking(self) -> None:
        for driver in self.drivers.values():
            driver.cancel_all()

    def go_to_stage(self, stage: int) -> None:
        """Revisit an earlier stage; later stage data stays until overwritten."""
        self.progress.go_to(stage)

    def reset(self) -> None:
        """Start over at stage 1. The ledger history is kept."""
        self.cancel_tracking()
        self.progress.reset()

    def clear_history(self) -> None:
        self.cancel_tracking()
        self.ledger.clear()

    def poll_sessions(self) -> list[dict]:
        rows = []
        for driver in self.drivers.values():
            rows.extend(driver.sessions())
        return rows
