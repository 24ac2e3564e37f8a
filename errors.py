"""
Error taxonomy shared by every layer of the minting workflow.

Remote failures (AuthError, TransportError) are surfaced to the user and
leave the workflow retryable. PollTimeoutError is a warning: the remote
operation may still complete. The remaining errors are contract violations
between the drivers and the local state containers.
"""

from __future__ import annotations


class MintPilotError(Exception):
    """Base class for all workflow errors."""


class AuthError(MintPilotError):
    """Missing or rejected credentials, or a failed token refresh."""


class TransportError(MintPilotError):
    """Network, HTTP or payload failure talking to a remote collaborator."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PollTimeoutError(MintPilotError, TimeoutError):
    """Attempt budget exhausted before the operation reached a terminal status."""

    def __init__(self, attempts: int, last_result=None):
        super().__init__(f"no terminal status after {attempts} attempts")
        self.attempts = attempts
        self.last_result = last_result


class ContractViolation(MintPilotError):
    """Misuse of the ledger or progress controller."""


class OutOfOrderError(ContractViolation):
    """A stage was advanced or submitted while another stage is active."""


class PrerequisiteError(ContractViolation):
    """A stage was entered without the data produced by earlier stages."""


class BusyError(ContractViolation):
    """A submission or poll is already in flight."""


class DuplicateIdError(ContractViolation):
    """A ledger record with this operation id already exists."""


class NotFoundError(ContractViolation):
    """No ledger record with this operation id."""


class InvalidTransitionError(ContractViolation):
    """A ledger status change that would leave a terminal status."""


class InvalidRequestError(MintPilotError):
    """A stage request the remote service would reject, caught before submitting."""
