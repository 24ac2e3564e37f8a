"""
Domain models for the minting workflow.

Note: OperationRecord, OperationKind and OperationStatus live in
features.ledger.models. They are re-exported here for convenience.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any

# Ledger domain models live in features.ledger.models
from features.ledger.models import OperationKind, OperationRecord, OperationStatus  # noqa: F401


class Stage(IntEnum):
    CONTRACT = 1
    TOKEN_TYPE = 2
    MINT = 3


FIRST_STAGE = Stage.CONTRACT
LAST_STAGE = Stage.MINT


# ── Credentials ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Credentials:
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class IssuedToken:
    """Response of the token-issuance collaborator."""
    token: str
    ttl_seconds: float


@dataclass
class CredentialState:
    identity: Credentials | None = None
    token: str | None = None
    expires_at: float | None = None  # epoch seconds

    def to_dict(self) -> dict:
        return {
            "identity": asdict(self.identity) if self.identity else None,
            "token": self.token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialState":
        identity = data.get("identity")
        return cls(
            identity=Credentials(**identity) if identity else None,
            token=data.get("token"),
            expires_at=data.get("expires_at"),
        )


# ── Stage requests ────────────────────────────────────────────────────

@dataclass
class ContractRequest:
    name: str
    chain: str
    description: str = ""
    image: str = ""
    external_url: str = ""

    def to_remote(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "externalUrl": self.external_url,
            "chain": self.chain,
        }


@dataclass
class TokenTypeRequest:
    name: str
    description: str = ""
    image: str = ""


@dataclass
class Destination:
    address: str
    amount: int = 1


@dataclass
class MintRequest:
    destinations: list[Destination] = field(default_factory=list)


# ── Remote operation envelopes ────────────────────────────────────────

@dataclass
class Submission:
    """An operation the remote service accepted."""
    operation_id: str
    status: OperationStatus = OperationStatus.PENDING
    payload: dict = field(default_factory=dict)


@dataclass
class StatusSnapshot:
    """One status-check response, normalized."""
    status: OperationStatus
    result: dict = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


# ── Stage results ─────────────────────────────────────────────────────

@dataclass
class ContractResult:
    """Deployed contract — what stage 2 builds on."""
    address: str
    chain: str
    id: str = ""
    name: str = ""
    description: str = ""
    image: str = ""
    external_url: str = ""
    transaction_hash: str = ""

    @classmethod
    def from_remote(cls, result: dict) -> "ContractResult":
        return cls(
            address=result.get("address") or "",
            chain=result.get("chain") or "",
            id=str(result.get("id") or ""),
            name=result.get("name") or "",
            description=result.get("description") or "",
            image=result.get("image") or "",
            external_url=result.get("externalUrl") or "",
            transaction_hash=result.get("transactionHash") or "",
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ContractResult":
        return cls(**data)


@dataclass
class TokenTypeResult:
    """Created token type — what stage 3 mints.

    ``id`` is the numeric token type id on the contract; ``creation_id`` is
    the remote operation that produced it.
    """
    id: int | None
    creation_id: str = ""
    name: str = ""
    description: str = ""
    image: str = ""
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_remote(cls, result: dict) -> "TokenTypeResult":
        metadata = dict(result.get("metadata") or {})
        token_type_id = result.get("tokenTypeId")
        return cls(
            id=int(token_type_id) if token_type_id is not None else None,
            creation_id=str(result.get("id") or ""),
            name=metadata.get("name") or result.get("name") or "",
            description=metadata.get("description") or result.get("description") or "",
            image=metadata.get("image") or result.get("image") or "",
            metadata=metadata,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TokenTypeResult":
        return cls(**data)


@dataclass
class MintResult:
    id: str
    chain: str = ""
    contract_address: str = ""
    token_type_id: int | None = None
    destinations: list[dict] = field(default_factory=list)
    transaction_hash: str = ""

    @classmethod
    def from_remote(cls, result: dict) -> "MintResult":
        return cls(
            id=str(result.get("id") or ""),
            chain=result.get("chain") or "",
            contract_address=result.get("contractAddress") or "",
            token_type_id=result.get("tokenTypeId"),
            destinations=list(result.get("destinations") or []),
            transaction_hash=result.get("transactionHash") or "",
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StageData:
    """Products of completed stages."""
    contract: ContractResult | None = None
    token_type: TokenTypeResult | None = None

    def merge(self, result: Any) -> None:
        if isinstance(result, ContractResult):
            self.contract = result
        elif isinstance(result, TokenTypeResult):
            self.token_type = result
        elif isinstance(result, StageData):
            self.contract = result.contract or self.contract
            self.token_type = result.token_type or self.token_type

    def to_dict(self) -> dict:
        data: dict = {}
        if self.contract:
            data["contract"] = self.contract.to_dict()
        if self.token_type:
            data["token_type"] = self.token_type.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "StageData":
        contract = data.get("contract")
        token_type = data.get("token_type")
        return cls(
            contract=ContractResult.from_dict(contract) if contract else None,
            token_type=TokenTypeResult.from_dict(token_type) if token_type else None,
        )
