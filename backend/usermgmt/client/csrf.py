"""
UserMgmt Backend — CSRF Token Manager (client side)
=====================================================

What:  Fetches, caches and attaches the anti-forgery token for one session.
Why:   Every mutating call needs the token, but a page bootstrap fires many
       calls at once. They must share one issuance instead of racing N
       fetches that would each rotate the session cookie.
How:   A small state machine around one shared asyncio task.

State Machine:
    IDLE ──initialize()──► PENDING ──fetch ok──► SUCCESS (token cached)
                              │
                              └──fetch failed──► ERROR (no token)

    initialize() while PENDING   → awaits the same in-flight task
    initialize() in SUCCESS/ERROR → returns immediately
    reset()                       → cancels any fetch, clears token, IDLE

    A failed fetch is logged and swallowed. Callers proceed without a
    token and the server answers csrf/invalid on the mutating request,
    which is better than blocking page load on the token endpoint.

Concurrency:
    Waiters await asyncio.shield(task), so a caller that is cancelled stops
    waiting without aborting the fetch other callers depend on. Only
    reset()/aclose() cancel the fetch itself; a cancelled fetch leaves the
    manager IDLE so the next initialize() starts over.
"""

import asyncio
import logging
from enum import Enum
from typing import Mapping, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from usermgmt.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})


class CsrfFetchState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class CsrfTokenError(Exception):
    """Issuance endpoint answered without a usable token."""


class CsrfTokenManager:
    """
    Per-session CSRF token cache with deduplicated issuance.

    Args:
        client:   httpx client for the session. Its cookie jar receives the
                  session-bound CSRF cookie set by the issuance endpoint.
        settings: Header name, token path and retry policy.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Optional[Settings] = None):
        self._client = client
        self._settings = settings or default_settings
        self._token: Optional[str] = None
        self._state = CsrfFetchState.IDLE
        self._pending: Optional["asyncio.Task[None]"] = None

    @property
    def state(self) -> CsrfFetchState:
        return self._state

    @property
    def header_name(self) -> str:
        return self._settings.csrf_header

    def current_token(self) -> Optional[str]:
        """Cached token, if any. Never triggers issuance."""
        return self._token

    async def initialize(self) -> None:
        """Ensure one issuance has been attempted for this session."""
        if self._state is CsrfFetchState.IDLE:
            self._state = CsrfFetchState.PENDING
            self._pending = asyncio.ensure_future(self._fetch_and_store())

        pending = self._pending
        if self._state is CsrfFetchState.PENDING and pending is not None:
            try:
                await asyncio.shield(pending)
            except asyncio.CancelledError:
                # reset() cancelled the shared fetch; only our own cancellation propagates
                current = asyncio.current_task()
                if pending.cancelled() and not (current and current.cancelling()):
                    return
                raise

    def attach(self, headers: Optional[Mapping[str, str]], method: str) -> dict:
        """
        Return a copy of `headers` with the token added for mutating methods.

        No token cached is not an error here; the server rejects the request.
        """
        result = dict(headers or {})
        if method.upper() in MUTATING_METHODS and self._token:
            result[self.header_name] = self._token
        return result

    async def reset(self) -> None:
        """Drop the cached token so the next initialize() issues a new one."""
        pending, self._pending = self._pending, None
        self._token = None
        self._state = CsrfFetchState.IDLE
        if pending is not None and not pending.done():
            pending.cancel()
            try:
                await pending
            except asyncio.CancelledError:
                pass

    async def aclose(self) -> None:
        await self.reset()

    # ── Internals ─────────────────────────────────────────────────────────

    def _is_current_fetch(self) -> bool:
        # A fetch superseded by reset() must not overwrite its successor's state
        return asyncio.current_task() is self._pending

    async def _fetch_and_store(self) -> None:
        try:
            token = await self._fetch_with_retry()
        except asyncio.CancelledError:
            if self._is_current_fetch():
                self._token = None
                self._state = CsrfFetchState.IDLE
            raise
        except Exception as exc:
            logger.warning("CSRF token fetch failed; continuing without a token: %s", exc)
            if self._is_current_fetch():
                self._token = None
                self._state = CsrfFetchState.ERROR
            return

        if not self._is_current_fetch():
            return
        self._token = token
        self._state = CsrfFetchState.SUCCESS
        logger.debug("CSRF token initialized")

    async def _fetch_with_retry(self) -> str:
        cfg = self._settings
        retrying = AsyncRetrying(
            stop=stop_after_attempt(cfg.csrf_fetch_max_attempts),
            wait=wait_exponential_jitter(
                multiplier=cfg.csrf_fetch_min_wait, max=cfg.csrf_fetch_max_wait
            ),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._fetch_once()
        raise CsrfTokenError("CSRF token fetch was not attempted")

    async def _fetch_once(self) -> str:
        response = await self._client.get(self._settings.csrf_token_path)
        if response.status_code != 200:
            raise CsrfTokenError(f"Failed to fetch CSRF token: {response.status_code}")
        token = response.json().get("csrfToken")
        if not token:
            raise CsrfTokenError("CSRF token missing from issuance response")
        return token
