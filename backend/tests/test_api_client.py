"""
UserMgmt Backend — API Client Tests
=====================================

What:  Tests ApiClient against the real app over ASGI.
Why:   The client is the other half of the CSRF handshake and of
       correlation propagation; both only make sense end to end.

What we test:
    ✅ Mutating calls fetch the CSRF token once and succeed
    ✅ Safe calls carry no CSRF header
    ✅ Calls made inside a correlation scope carry a child id
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from usermgmt.client import ApiClient
from usermgmt.client.csrf import CsrfFetchState
from usermgmt.config import settings
from usermgmt.middleware.correlation import correlation_scope


@pytest_asyncio.fixture
async def api(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        async with ApiClient(client=http) as client:
            yield client


class TestCsrfHandshake:

    @pytest.mark.asyncio
    async def test_post_fetches_token_and_succeeds(self, api, auth_headers):
        response = await api.post("/api/accounts", {"name": "Acme"}, headers=auth_headers())

        assert response.status_code == 200, response.text
        assert api.csrf.state is CsrfFetchState.SUCCESS

    @pytest.mark.asyncio
    async def test_token_is_reused_across_calls(self, api, auth_headers):
        await api.post("/api/accounts", {"name": "One"}, headers=auth_headers())
        token = api.csrf.current_token()
        await api.post("/api/accounts", {"name": "Two"}, headers=auth_headers())

        assert api.csrf.current_token() == token

        listing = (await api.get("/api/accounts", headers=auth_headers())).json()
        assert [a["name"] for a in listing["accounts"]] == ["Personal", "One", "Two"]

    @pytest.mark.asyncio
    async def test_safe_methods_carry_no_token(self, api):
        await api.csrf.initialize()
        assert settings.csrf_header not in api.build_headers("GET")
        assert settings.csrf_header in api.build_headers("DELETE")

    @pytest.mark.asyncio
    async def test_reset_then_post_fetches_new_token(self, api, auth_headers):
        await api.csrf.initialize()
        first = api.csrf.current_token()
        await api.csrf.reset()

        response = await api.post("/api/accounts", {"name": "Acme"}, headers=auth_headers())

        assert response.status_code == 200
        assert api.csrf.current_token() != first


class TestCorrelationPropagation:

    @pytest.mark.asyncio
    async def test_child_id_inside_scope(self, api):
        with correlation_scope("root-1"):
            response = await api.get("/health")

        echoed = response.headers[settings.correlation_header]
        assert echoed.startswith("root-1.")

    @pytest.mark.asyncio
    async def test_no_header_outside_scope(self, api):
        assert settings.correlation_header not in api.build_headers("GET")

    @pytest.mark.asyncio
    async def test_caller_header_wins(self, api):
        with correlation_scope("root-1"):
            headers = api.build_headers("GET", {settings.correlation_header: "explicit"})
        assert headers[settings.correlation_header] == "explicit"
