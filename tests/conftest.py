import httpx
import pytest

from features.auth import AuthSession
from features.ledger import TransactionLedger
from features.progress import ProgressController
from features.state import MemoryStateStore
from utils.api_client import LedgerApiClient, TokenEndpoint
from utils.notify import FeedNotifier
from workflows.pipeline import MintingWorkflow

AUTH_URL = "https://auth.test/auth"
API_URL = "https://api.test"
TOKEN_PATH = "/auth/realms/Arkane/protocol/openid-connect/token"
CHAINS = ["AVAC", "BSC", "ETHEREUM", "MATIC", "ARBITRUM"]


class FakeRemote:
    """In-process stand-in for the identity provider and the ledger API.

    `submits` maps a POST path to the result it returns; `statuses` maps a
    GET path to a queue of results (the last one repeats).
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.auth_headers: list[str] = []
        self.submits: dict[str, dict] = {}
        self.statuses: dict[str, list[dict]] = {}
        self.failures: dict[str, int] = {}
        self.network_down: set[str] = set()
        self.token_requests = 0
        self.reject_credentials = False
        self.token_ttl = 300

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))

        if path == TOKEN_PATH:
            if self.reject_credentials:
                return httpx.Response(400, json={"error": "invalid_client"})
            self.token_requests += 1
            return httpx.Response(200, json={
                "access_token": f"tok-{self.token_requests}",
                "expires_in": self.token_ttl,
                "token_type": "Bearer",
            })

        self.auth_headers.append(request.headers.get("Authorization", ""))
        if path in self.network_down:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.failures:
            return httpx.Response(self.failures[path], json={"success": False, "errors": ["boom"]})

        if request.method == "POST":
            return httpx.Response(200, json={"success": True, "result": self.submits[path]})
        queue = self.statuses[path]
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(200, json={"success": True, "result": result})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self, method: str | None = None) -> list[str]:
        return [p for m, p in self.calls if method is None or m == method]


def build_workflow(remote: FakeRemote, store=None, *, max_attempts: int = 3, interval: float = 0) -> MintingWorkflow:
    store = store if store is not None else MemoryStateStore()
    token_endpoint = TokenEndpoint(AUTH_URL, "Arkane", transport=remote.transport)
    auth = AuthSession(store, token_endpoint, refresh_margin=30)
    client = LedgerApiClient(auth, API_URL, transport=remote.transport, chains=CHAINS)
    return MintingWorkflow(
        auth=auth,
        ledger=TransactionLedger(store),
        progress=ProgressController(store),
        client=client,
        notifier=FeedNotifier(),
        interval=interval,
        max_attempts=max_attempts,
        closers=[client.aclose, token_endpoint.aclose],
    )


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def make_workflow(remote, store):
    def factory(**kwargs) -> MintingWorkflow:
        return build_workflow(remote, store, **kwargs)
    return factory
