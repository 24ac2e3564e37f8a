"""
Credential & token lifecycle.

Holds the client credentials and the current bearer token, and re-issues
the token whenever it is missing or about to expire. Every outbound call to
the remote service goes through ensure_fresh_token() first.

Two near-simultaneous refreshes are allowed to race: token issuance has no
side effects for the client and the last writer simply wins.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from errors import AuthError, TransportError
from features.state.store import StateStore
from models.schemas import CredentialState, Credentials, IssuedToken

log = logging.getLogger(__name__)

TokenIssuer = Callable[[Credentials], Awaitable[IssuedToken]]


class AuthSession:
    """Persisted credential/token state with refresh-before-expiry."""

    def __init__(
        self,
        store: StateStore,
        issue_token: TokenIssuer,
        *,
        refresh_margin: float = 30.0,
        clock: Callable[[], float] = time.time,
        name: str = "auth-storage",
    ):
        self.store = store
        self.issue_token = issue_token
        self.refresh_margin = refresh_margin
        self.clock = clock
        self.name = name
        self.state = CredentialState()

    # ── Persistence ───────────────────────────────────────────────────

    def load(self) -> None:
        data = self.store.load(self.name)
        self.state = CredentialState.from_dict(data) if data else CredentialState()

    def _persist(self) -> None:
        try:
            self.store.save(self.name, self.state.to_dict())
        except Exception as e:
            log.warning("Failed to persist credentials: %s", e)

    # ── Lifecycle ─────────────────────────────────────────────────────

    def set_identity(self, client_id: str, client_secret: str) -> None:
        self.state.identity = Credentials(client_id=client_id, client_secret=client_secret)
        self._persist()

    async def acquire_token(self) -> str:
        """Issue a new token for the stored identity."""
        identity = self.state.identity
        if identity is None:
            raise AuthError("no credentials stored")
        issued = await self.issue_token(identity)
        self.state.token = issued.token
        self.state.expires_at = self.clock() + issued.ttl_seconds
        log.info("Issued access token for %s (ttl %.0fs)", identity.client_id, issued.ttl_seconds)
        self._persist()
        return issued.token

    def needs_refresh(self) -> bool:
        if not self.state.token or self.state.expires_at is None:
            return True
        return self.state.expires_at - self.clock() < self.refresh_margin

    async def ensure_fresh_token(self) -> str:
        """Return a usable bearer token, refreshing it first if needed.

        A failed refresh falls back to the stale token; the remote service
        rejects it on its own if it has really expired.
        """
        if self.state.identity is None:
            raise AuthError("not authenticated")
        if not self.needs_refresh():
            return self.state.token

        stale = self.state.token
        try:
            return await self.acquire_token()
        except (AuthError, TransportError) as e:
            if not stale:
                raise AuthError(f"token refresh failed: {e}") from e
            log.error("Token refresh failed, using stale token: %s", e)
            return stale

    def is_authenticated(self) -> bool:
        return bool(
            self.state.token
            and self.state.expires_at is not None
            and self.state.expires_at > self.clock()
        )

    def clear(self) -> None:
        """Forget identity and token together."""
        self.state = CredentialState()
        log.info("Credentials cleared")
        self._persist()
