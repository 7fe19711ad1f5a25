"""
UserMgmt Backend — CSRF Token Manager Unit Tests
==================================================

What:  Tests for the client-side token state machine.
How:   httpx.MockTransport stands in for the issuance endpoint and counts
       how many times it was hit.

What we test:
    ✅ Concurrent initialize() calls share one issuance
    ✅ Re-initialization is a no-op after success or error
    ✅ current_token() never triggers issuance
    ✅ Failures degrade to "no token" without raising
    ✅ Transport errors are retried
    ✅ attach() only adds the header for mutating methods
    ✅ reset() cancels an in-flight fetch and allows re-issue
"""

import asyncio
import warnings

import httpx
import pytest
import pytest_asyncio

from usermgmt.client.csrf import CsrfFetchState, CsrfTokenManager
from usermgmt.config import settings


class IssuanceEndpoint:
    """Counting fake of GET /api/csrf."""

    def __init__(self, tokens=("token-1", "token-2", "token-3"), delay=0.01, status=200):
        self.calls = 0
        self.tokens = list(tokens)
        self.delay = delay
        self.status = status
        self.failures_before_success = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path == settings.csrf_token_path
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.failures_before_success:
            self.failures_before_success -= 1
            raise httpx.ConnectError("connection refused", request=request)
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "nope"})
        return httpx.Response(200, json={"csrfToken": self.tokens[self.calls - 1]})


@pytest.fixture
def endpoint():
    return IssuanceEndpoint()


@pytest_asyncio.fixture
async def http_client(endpoint):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(endpoint), base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
def manager(http_client):
    return CsrfTokenManager(http_client)


class TestInitialize:

    @pytest.mark.asyncio
    async def test_concurrent_initialize_issues_once(self, manager, endpoint):
        await asyncio.gather(manager.initialize(), manager.initialize())

        assert endpoint.calls == 1
        assert manager.current_token() == "token-1"
        assert manager.state is CsrfFetchState.SUCCESS

    @pytest.mark.asyncio
    async def test_many_concurrent_callers_share_one_fetch(self, manager, endpoint):
        await asyncio.gather(*(manager.initialize() for _ in range(20)))
        assert endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_second_initialize_after_success_is_noop(self, manager, endpoint):
        await manager.initialize()
        await manager.initialize()

        assert endpoint.calls == 1
        assert manager.current_token() == "token-1"

    @pytest.mark.asyncio
    async def test_pending_state_while_fetch_in_flight(self, manager):
        task = asyncio.ensure_future(manager.initialize())
        await asyncio.sleep(0)
        assert manager.state is CsrfFetchState.PENDING
        await task

    @pytest.mark.asyncio
    async def test_current_token_never_fetches(self, manager, endpoint):
        assert manager.current_token() is None
        assert endpoint.calls == 0
        assert manager.state is CsrfFetchState.IDLE


class TestFailures:

    @pytest.mark.asyncio
    async def test_http_error_is_swallowed(self, manager, endpoint):
        endpoint.status = 500

        await manager.initialize()

        assert manager.state is CsrfFetchState.ERROR
        assert manager.current_token() is None
        assert endpoint.calls == 1  # status errors are not retried

    @pytest.mark.asyncio
    async def test_error_state_is_terminal_until_reset(self, manager, endpoint):
        endpoint.status = 500
        await manager.initialize()
        endpoint.status = 200
        await manager.initialize()

        assert endpoint.calls == 1
        assert manager.current_token() is None

    @pytest.mark.asyncio
    async def test_missing_token_field_is_an_error(self):
        async def handler(request):
            return httpx.Response(200, json={})

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://test"
        ) as client:
            manager = CsrfTokenManager(client)
            await manager.initialize()

        assert manager.state is CsrfFetchState.ERROR

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, manager, endpoint):
        endpoint.failures_before_success = 1

        await manager.initialize()

        assert endpoint.calls == 2
        assert manager.state is CsrfFetchState.SUCCESS
        assert manager.current_token() == "token-2"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, manager, endpoint):
        endpoint.failures_before_success = 100

        await manager.initialize()

        assert endpoint.calls == settings.csrf_fetch_max_attempts
        assert manager.state is CsrfFetchState.ERROR


class TestAttach:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH", "post"])
    async def test_mutating_methods_get_header(self, manager, method):
        await manager.initialize()
        headers = manager.attach({"Accept": "application/json"}, method)
        assert headers[settings.csrf_header] == "token-1"
        assert headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    async def test_safe_methods_are_untouched(self, manager, method):
        await manager.initialize()
        assert settings.csrf_header not in manager.attach({}, method)

    @pytest.mark.asyncio
    async def test_no_token_is_not_an_error(self, manager):
        assert manager.attach(None, "POST") == {}

    @pytest.mark.asyncio
    async def test_attach_does_not_mutate_input(self, manager):
        await manager.initialize()
        original = {"Accept": "application/json"}
        manager.attach(original, "POST")
        assert original == {"Accept": "application/json"}


class TestResetAndCancellation:

    @pytest.mark.asyncio
    async def test_reset_allows_reissue(self, manager, endpoint):
        await manager.initialize()
        await manager.reset()

        assert manager.state is CsrfFetchState.IDLE
        assert manager.current_token() is None

        await manager.initialize()
        assert endpoint.calls == 2
        assert manager.current_token() == "token-2"

    @pytest.mark.asyncio
    async def test_reset_cancels_in_flight_fetch(self, manager, endpoint):
        endpoint.delay = 10
        waiter = asyncio.ensure_future(manager.initialize())
        await asyncio.sleep(0.01)
        assert manager.state is CsrfFetchState.PENDING

        await manager.reset()
        await asyncio.wait_for(waiter, timeout=1)

        assert manager.state is CsrfFetchState.IDLE
        assert manager.current_token() is None

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_abort_shared_fetch(self, manager, endpoint):
        endpoint.delay = 0.05
        first = asyncio.ensure_future(manager.initialize())
        second = asyncio.ensure_future(manager.initialize())
        await asyncio.sleep(0.01)

        first.cancel()
        await second

        assert first.cancelled()
        assert manager.state is CsrfFetchState.SUCCESS
        assert endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_initialize_during_reset_starts_new_fetch(self, manager, endpoint):
        endpoint.delay = 10
        first = asyncio.ensure_future(manager.initialize())
        await asyncio.sleep(0.01)
        endpoint.delay = 0.01

        resetting = asyncio.ensure_future(manager.reset())
        await asyncio.sleep(0)
        assert manager.state is CsrfFetchState.IDLE

        await manager.initialize()
        await resetting
        await first

        assert endpoint.calls == 2
        assert manager.state is CsrfFetchState.SUCCESS
        assert manager.current_token() == "token-2"


class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_retry_policy_emits_no_deprecation_warnings(self, manager, endpoint):
        endpoint.failures_before_success = 1
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            await manager.initialize()

        assert manager.state is CsrfFetchState.SUCCESS
        deprecations = [
            str(w.message) for w in caught if issubclass(w.category, DeprecationWarning)
        ]
        assert not [m for m in deprecations if "parameter is deprecated" in m]
