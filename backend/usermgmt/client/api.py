"""
UserMgmt Backend — API Client
===============================

What:  JSON client for the backend's own API, used by scripts, internal
       callers and tests the way the browser bundle uses it.
Why:   Keeps the two client-side halves of the pipeline in one place:
       the CSRF token goes on every mutating call, and a call made while
       serving a request carries a child of that request's correlation id.
How:   Thin wrapper over httpx.AsyncClient with a CsrfTokenManager.

Example:
    async with ApiClient() as api:
        await api.post("/api/accounts", {"name": "Acme"})
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from usermgmt.client.csrf import MUTATING_METHODS, CsrfTokenManager
from usermgmt.config import Settings, settings as default_settings
from usermgmt.middleware.correlation import child_correlation_id, current_correlation_id

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Session-scoped API client.

    Args:
        base_url:  API origin; defaults to settings.api_base_url
        client:    Preconfigured httpx client (tests pass one with a mock
                   or ASGI transport). Owned by the caller when given.
        settings:  Header names, timeout and CSRF fetch policy
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or default_settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or self._settings.api_base_url,
            timeout=self._settings.api_timeout,
            headers={"Content-Type": "application/json"},
        )
        self.csrf = CsrfTokenManager(self._client, settings=self._settings)
        self._priming: Optional["asyncio.Task[None]"] = None

    async def __aenter__(self) -> "ApiClient":
        self.prime()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def prime(self) -> None:
        """Start CSRF initialization in the background."""
        if self._priming is None:
            self._priming = asyncio.ensure_future(self.csrf.initialize())

    async def aclose(self) -> None:
        await self.csrf.aclose()
        if self._priming is not None and not self._priming.done():
            self._priming.cancel()
        if self._owns_client:
            await self._client.aclose()

    def build_headers(
        self, method: str, headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, str]:
        """Headers for an outgoing call: caller's, plus CSRF and correlation."""
        result = self.csrf.attach(headers, method)
        if current_correlation_id() is not None:
            result.setdefault(self._settings.correlation_header, child_correlation_id())
        return result

    async def request(
        self,
        method: str,
        url: str,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        method = method.upper()
        if method in MUTATING_METHODS:
            await self.csrf.initialize()
        return await self._client.request(
            method,
            url,
            json=json,
            headers=self.build_headers(method, headers),
            **kwargs,
        )

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, json=data, **kwargs)

    async def put(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, json=data, **kwargs)

    async def patch(self, url: str, data: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, json=data, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)
