"""
UserMgmt Backend — Auth Resolver Unit Tests
=============================================

What:  Tests credential extraction, verification and the AuthContext value.
How:   Requests are built from raw ASGI scopes; tokens are signed with the
       test secret from conftest.py.

What we test:
    ✅ Bearer header first, access-token cookie as fallback
    ✅ Missing / malformed / wrongly signed credentials → auth/unauthenticated
    ✅ Expired credentials → auth/expired
    ✅ Claims are read-only
    ✅ Resolution is idempotent
"""

from unittest.mock import AsyncMock

import pytest
from starlette.requests import Request

from usermgmt.config import settings
from usermgmt.exceptions import CredentialExpiredError, UnauthenticatedError
from usermgmt.middleware.auth import AuthContext, AuthResolver, JWTCredentialVerifier


def make_request(headers=None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


@pytest.fixture
def resolver():
    return AuthResolver()


class TestExtractCredential:

    def test_bearer_header(self, resolver):
        request = make_request({"Authorization": "Bearer abc.def.ghi"})
        assert resolver.extract_credential(request) == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self, resolver):
        request = make_request({"Authorization": "bearer abc"})
        assert resolver.extract_credential(request) == "abc"

    def test_cookie_fallback(self, resolver):
        request = make_request({"Cookie": f"{settings.auth_cookie_name}=from-cookie"})
        assert resolver.extract_credential(request) == "from-cookie"

    def test_header_wins_over_cookie(self, resolver):
        request = make_request({
            "Authorization": "Bearer from-header",
            "Cookie": f"{settings.auth_cookie_name}=from-cookie",
        })
        assert resolver.extract_credential(request) == "from-header"

    def test_non_bearer_scheme_is_ignored(self, resolver):
        request = make_request({"Authorization": "Basic dXNlcjpwYXNz"})
        assert resolver.extract_credential(request) is None

    def test_nothing_sent(self, resolver):
        assert resolver.extract_credential(make_request()) is None


class TestResolve:

    @pytest.mark.asyncio
    async def test_valid_token(self, resolver, make_token):
        request = make_request({"Authorization": f"Bearer {make_token('user-42')}"})
        auth = await resolver.resolve(request)

        assert auth.user_id == "user-42"
        assert auth.claims["role"] == "authenticated"

    @pytest.mark.asyncio
    async def test_valid_cookie_token(self, resolver, make_token):
        request = make_request({"Cookie": f"{settings.auth_cookie_name}={make_token('user-7')}"})
        auth = await resolver.resolve(request)
        assert auth.user_id == "user-7"

    @pytest.mark.asyncio
    async def test_missing_credential(self, resolver):
        with pytest.raises(UnauthenticatedError):
            await resolver.resolve(make_request())

    @pytest.mark.asyncio
    async def test_expired_token(self, resolver, make_token):
        request = make_request({"Authorization": f"Bearer {make_token(expires_in=-60)}"})
        with pytest.raises(CredentialExpiredError) as exc_info:
            await resolver.resolve(request)
        assert exc_info.value.kind.value == "auth/expired"

    @pytest.mark.asyncio
    async def test_wrong_signature(self, resolver, make_token):
        token = make_token(secret="some-other-secret-0123456789abcdef")
        with pytest.raises(UnauthenticatedError):
            await resolver.resolve(make_request({"Authorization": f"Bearer {token}"}))

    @pytest.mark.asyncio
    async def test_garbage_token(self, resolver):
        with pytest.raises(UnauthenticatedError):
            await resolver.resolve(make_request({"Authorization": "Bearer not-a-jwt"}))

    @pytest.mark.asyncio
    async def test_wrong_audience(self, resolver, make_token):
        token = make_token(aud="some-other-service")
        with pytest.raises(UnauthenticatedError):
            await resolver.resolve(make_request({"Authorization": f"Bearer {token}"}))

    @pytest.mark.asyncio
    async def test_empty_subject(self, resolver, make_token):
        token = make_token(sub="")
        with pytest.raises(UnauthenticatedError):
            await resolver.resolve(make_request({"Authorization": f"Bearer {token}"}))

    @pytest.mark.asyncio
    async def test_unconfigured_secret_rejects_everything(self, make_token):
        resolver = AuthResolver(verifier=JWTCredentialVerifier(secret=""))
        with pytest.raises(UnauthenticatedError):
            await resolver.resolve(make_request({"Authorization": f"Bearer {make_token()}"}))

    @pytest.mark.asyncio
    async def test_resolution_is_idempotent(self, resolver, make_token):
        request = make_request({"Authorization": f"Bearer {make_token('user-1')}"})
        assert await resolver.resolve(request) == await resolver.resolve(request)

    @pytest.mark.asyncio
    async def test_custom_verifier(self):
        verifier = AsyncMock()
        verifier.verify.return_value = {"sub": "svc-account", "scope": "read"}
        resolver = AuthResolver(verifier=verifier)

        auth = await resolver.resolve(make_request({"Authorization": "Bearer opaque"}))

        verifier.verify.assert_awaited_once_with("opaque")
        assert auth.user_id == "svc-account"


class TestAuthContext:

    def test_claims_are_read_only(self):
        auth = AuthContext(user_id="user-1", claims={"role": "authenticated"})
        with pytest.raises(TypeError):
            auth.claims["role"] = "admin"

    def test_fields_are_frozen(self):
        auth = AuthContext(user_id="user-1")
        with pytest.raises(AttributeError):
            auth.user_id = "user-2"

    def test_claims_are_copied(self):
        source = {"role": "authenticated"}
        auth = AuthContext(user_id="user-1", claims=source)
        source["role"] = "admin"
        assert auth.claims["role"] == "authenticated"
