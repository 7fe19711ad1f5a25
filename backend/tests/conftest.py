"""
UserMgmt Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── make_token:    Signs access tokens with the test JWT secret
    ├── services:      Fresh in-memory service registry
    ├── app:           FastAPI app built around `services`
    ├── test_client:   HTTPX AsyncClient talking to `app` over ASGI
    └── csrf_headers:  Issued CSRF token as header + cookie for mutating calls
"""

import os
import time

# Override settings for testing BEFORE any usermgmt imports: the settings
# singleton and the prebuilt chains read them at import time.
os.environ["AUTH_JWT_SECRET"] = "test-secret-not-real-0123456789abcdef"
os.environ["AUTH_JWT_AUDIENCE"] = "authenticated"
os.environ["CSRF_COOKIE_SECURE"] = "false"  # the ASGI test client speaks plain http
os.environ["CSRF_FETCH_MIN_WAIT"] = "0"
os.environ["CSRF_FETCH_MAX_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

import jwt
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from usermgmt.config import settings
from usermgmt.main import create_app
from usermgmt.services import build_in_memory_registry


@pytest.fixture
def make_token():
    """
    Factory for access tokens shaped like the identity provider's.

    Usage:
        token = make_token("user-1")
        expired = make_token("user-1", expires_in=-60)
    """

    def _make(sub="user-1", expires_in=3600, secret=None, **claims):
        payload = {
            "sub": sub,
            "aud": settings.auth_jwt_audience,
            "exp": int(time.time()) + expires_in,
            "role": "authenticated",
            **claims,
        }
        return jwt.encode(payload, secret or settings.auth_jwt_secret, algorithm="HS256")

    return _make


@pytest.fixture
def services():
    return build_in_memory_registry()


@pytest.fixture
def app(services):
    return create_app(services=services)


@pytest_asyncio.fixture
async def test_client(app):
    """
    Async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def csrf_headers(test_client):
    """
    Issue a CSRF token and return the headers a browser would send with it.

    The client's cookie jar is cleared afterwards so that tests control the
    Cookie header explicitly.
    """
    response = await test_client.get(settings.csrf_token_path)
    assert response.status_code == 200
    token = response.json()["csrfToken"]
    test_client.cookies.clear()
    return {
        settings.csrf_header: token,
        "Cookie": f"{settings.csrf_cookie_name}={token}",
    }


@pytest.fixture
def auth_headers(make_token):
    def _headers(sub="user-1", **kwargs):
        return {"Authorization": f"Bearer {make_token(sub, **kwargs)}"}

    return _headers
