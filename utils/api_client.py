"""
Remote ledger service client — shared across all activities.

Wraps an httpx.AsyncClient pointed at the ERC-1155 API. Before every call
the bearer token is refreshed through the auth session if it is missing or
close to expiry. Responses are `{success, result}` envelopes; this module
returns the `result` part.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

import config
from errors import AuthError, TransportError
from models.schemas import Credentials, IssuedToken

if TYPE_CHECKING:
    from features.auth import AuthSession

log = logging.getLogger(__name__)

JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


def _raise_for_status(resp: httpx.Response, what: str) -> None:
    if resp.is_success:
        return
    detail = resp.text[:500]
    if resp.status_code in (401, 403):
        raise AuthError(f"{what} rejected ({resp.status_code}): {detail}")
    raise TransportError(f"{what} failed ({resp.status_code}): {detail}", status_code=resp.status_code)


def _json(resp: httpx.Response, what: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise TransportError(f"{what} returned invalid JSON", status_code=resp.status_code) from e


# ── Token issuance ────────────────────────────────────────────────────

class TokenEndpoint:
    """OpenID Connect client_credentials grant against the identity provider."""

    def __init__(
        self,
        base_url: str | None = None,
        realm: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or config.AUTH_BASE_URL).rstrip("/")
        self.realm = realm or config.AUTH_REALM
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=timeout or config.REQUEST_TIMEOUT_SEC,
            headers={"Accept": "application/json"},
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}/realms/{self.realm}/protocol/openid-connect/token"

    async def __call__(self, credentials: Credentials) -> IssuedToken:
        form = {
            "grant_type": "client_credentials",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
        }
        try:
            resp = await self._http.post(self.url, data=form)
        except httpx.RequestError as e:
            raise TransportError(f"token request failed: {e}") from e

        # The identity provider answers bad credentials with 400 invalid_client.
        if resp.status_code in (400, 401, 403):
            raise AuthError(f"invalid client credentials ({resp.status_code})")
        _raise_for_status(resp, "token request")

        body = _json(resp, "token request")
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise AuthError("token response missing access_token")
        return IssuedToken(token=token, ttl_seconds=float(body.get("expires_in", 0)))

    async def aclose(self) -> None:
        await self._http.aclose()


# ── Ledger API ────────────────────────────────────────────────────────

class LedgerApiClient:
    """Async client for contract deployment, token-type creation and minting."""

    def __init__(
        self,
        auth: "AuthSession",
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        chains: list[str] | None = None,
    ):
        self.auth = auth
        self._http = httpx.AsyncClient(
            base_url=(base_url or config.API_BASE_URL).rstrip("/"),
            transport=transport,
            timeout=timeout or config.REQUEST_TIMEOUT_SEC,
            headers=JSON_HEADERS,
        )
        self._chains = list(chains if chains is not None else config.SUPPORTED_CHAINS)

    async def request(self, method: str, path: str, json: dict | None = None) -> Any:
        """Send one authenticated request and unwrap the result envelope."""
        token = await self.auth.ensure_fresh_token()
        what = f"{method} {path}"
        try:
            resp = await self._http.request(
                method, path, json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.RequestError as e:
            raise TransportError(f"{what} failed: {e}") from e

        _raise_for_status(resp, what)
        body = _json(resp, what)
        if isinstance(body, dict) and "result" in body:
            if body.get("success") is False:
                raise TransportError(f"{what} reported failure: {body.get('errors') or body}",
                                     status_code=resp.status_code)
            return body["result"]
        return body

    # Chains are static, no request needed
    async def list_chains(self) -> list[str]:
        return list(self._chains)

    # Contracts
    async def deploy_contract(self, payload: dict) -> dict:
        return await self.request("POST", "/erc1155/contracts/deployments", payload)

    async def get_contract_deployment(self, deployment_id: str) -> dict:
        return await self.request("GET", f"/erc1155/contracts/deployments/{deployment_id}")

    # Token types
    async def create_token_type(self, payload: dict) -> dict:
        return await self.request("POST", "/erc1155/token-types/creations", payload)

    async def get_token_type_creation(self, creation_id: str) -> dict:
        return await self.request("GET", f"/erc1155/token-types/creations/{creation_id}")

    # Mints
    async def mint_tokens(self, payload: dict) -> dict:
        return await self.request("POST", "/erc1155/tokens/mints", payload)

    async def get_mint(self, mint_id: str) -> dict:
        return await self.request("GET", f"/erc1155/tokens/mints/{mint_id}")

    async def aclose(self) -> None:
        await self._http.aclose()
