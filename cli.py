"""
Command-line runner — drives the minting workflow without the API.

Usage:
    python cli.py run --client-id ID --client-secret SECRET \
        --name "Ekwel Cash" --chain MATIC --image https://... \
        --to 0xabc:10 --to 0xdef:5
    python cli.py history
    python cli.py check <operation_id>
    python cli.py reset
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from errors import MintPilotError
from models.schemas import ContractRequest, Destination, MintRequest, Stage, TokenTypeRequest
from workflows.pipeline import MintingWorkflow

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)


def _destination(value: str) -> Destination:
    address, _, amount = value.partition(":")
    if not address:
        raise argparse.ArgumentTypeError(f"bad destination {value!r}, expected ADDRESS[:AMOUNT]")
    try:
        return Destination(address=address, amount=int(amount or 1))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"bad amount in {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="token-mint-pilot")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="deploy, create a token type and mint, resuming where progress left off")
    run.add_argument("--client-id", default=os.getenv("CLIENT_ID", ""))
    run.add_argument("--client-secret", default=os.getenv("CLIENT_SECRET", ""))
    run.add_argument("--name", required=True)
    run.add_argument("--description", default="")
    run.add_argument("--image", default="")
    run.add_argument("--external-url", default="")
    run.add_argument("--chain", default="MATIC")
    run.add_argument("--token-name", default=None, help="defaults to --name")
    run.add_argument("--to", dest="destinations", type=_destination, action="append", default=[],
                     help="ADDRESS[:AMOUNT], repeatable")

    sub.add_parser("history", help="list recorded operations")

    check = sub.add_parser("check", help="re-poll a pending operation")
    check.add_argument("operation_id")

    sub.add_parser("reset", help="start over at stage 1 (history is kept)")
    return parser


async def run_all(wf: MintingWorkflow, args: argparse.Namespace) -> int:
    if args.client_id and args.client_secret:
        await wf.login(args.client_id, args.client_secret)
    elif wf.auth.state.identity is None:
        log.error("No stored credentials; pass --client-id/--client-secret")
        return 2
    if not args.destinations:
        log.error("At least one --to destination is required")
        return 2

    requests = {
        Stage.CONTRACT: ContractRequest(
            name=args.name, chain=args.chain, description=args.description,
            image=args.image, external_url=args.external_url,
        ),
        Stage.TOKEN_TYPE: TokenTypeRequest(
            name=args.token_name or args.name, description=args.description, image=args.image,
        ),
        Stage.MINT: MintRequest(destinations=args.destinations),
    }

    start = wf.progress.current_stage
    if start > Stage.CONTRACT:
        log.info("Resuming at stage %d", start)
    for stage in Stage:
        if stage < start:
            continue
        outcome = await wf.run_stage(stage, requests[stage])
        log.info("Stage %d (%s): %s", stage, outcome.operation_id, outcome.outcome.value)
        if not outcome.succeeded:
            return 1

    log.info("Workflow complete, progress is back at stage %d", wf.progress.current_stage)
    return 0


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    wf = MintingWorkflow.from_config()
    wf.load()
    try:
        if args.command == "run":
            return await run_all(wf, args)
        if args.command == "history":
            for r in wf.ledger.list():
                print(f"{r.submitted_at}  {r.status.value:<9}  {r.kind.value:<19}  {r.id}")
            return 0
        if args.command == "check":
            outcome = await wf.recheck(args.operation_id)
            print(f"{args.operation_id}: {outcome.outcome.value}")
            return 0 if outcome.succeeded else 1
        if args.command == "reset":
            wf.reset()
            return 0
        return 2
    except MintPilotError as e:
        log.error("%s: %s", type(e).__name__, e)
        return 1
    finally:
        await wf.close()


def entrypoint() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    entrypoint()
