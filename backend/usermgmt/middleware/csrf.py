"""
UserMgmt Backend — CSRF Issuance and Validation
=================================================

What:  Server half of the anti-forgery handshake: issue a token bound to the
       browser session, and reject mutating requests that don't echo it.
Why:   Cookies ride along on cross-site form posts; a custom header carrying
       a value only our own pages could read does not.
How:   Double-submit. Issuance sets the token as an HttpOnly cookie and
       returns the same value in the JSON body. The client keeps the body
       value in memory and sends it back in the CSRF header. Validation
       compares header and cookie in constant time.

Handshake:
    GET  /api/csrf          → Set-Cookie: csrf_token=T   {"csrfToken": "T"}
    POST /api/accounts      ← Cookie: csrf_token=T       X-CSRF-Token: T
                              (any mismatch or absence → 403 csrf/invalid)

Safe methods (GET, HEAD, OPTIONS) bypass validation entirely.
"""

import logging
import secrets
from typing import FrozenSet, Optional

from starlette.responses import JSONResponse, Response

from usermgmt.config import Settings, settings as default_settings
from usermgmt.exceptions import CsrfInvalidError
from usermgmt.middleware.base import CallNext, PipelineStep

logger = logging.getLogger(__name__)

SAFE_METHODS: FrozenSet[str] = frozenset({"GET", "HEAD", "OPTIONS"})


def generate_csrf_token(nbytes: Optional[int] = None) -> str:
    """URL-safe random token with `nbytes` bytes of entropy."""
    return secrets.token_urlsafe(nbytes or default_settings.csrf_token_bytes)


def issue_csrf_token(settings: Optional[Settings] = None) -> JSONResponse:
    """
    Build the issuance response: the token in the body and in the session cookie.

    Every call issues a new token. Issuing is the only way a session's
    token changes; there is no automatic expiry.
    """
    cfg = settings or default_settings
    token = generate_csrf_token(cfg.csrf_token_bytes)
    response = JSONResponse(
        content={"csrfToken": token},
        headers={"Cache-Control": "no-store"},
    )
    response.set_cookie(
        key=cfg.csrf_cookie_name,
        value=token,
        httponly=True,
        secure=cfg.csrf_cookie_secure,
        samesite="strict",
        path="/",
    )
    return response


def validate_csrf(
    method: str,
    header_token: Optional[str],
    session_token: Optional[str],
) -> None:
    """
    Raise CsrfInvalidError unless the request is safe or carries the session's token.

    Args:
        method:        HTTP method of the request
        header_token:  Value of the CSRF header, if sent
        session_token: Token bound to the session at issuance (the cookie)
    """
    if method.upper() in SAFE_METHODS:
        return
    if not header_token:
        raise CsrfInvalidError("CSRF token header is missing")
    if not session_token:
        raise CsrfInvalidError("No CSRF token has been issued for this session")
    if not secrets.compare_digest(header_token.encode(), session_token.encode()):
        raise CsrfInvalidError("CSRF token does not match the session token")


class CsrfStep(PipelineStep):
    """
    Rejects state-mutating requests that fail the double-submit check.

    Runs after CorrelationStep and before AuthStep, so a forged request is
    refused before any credential is looked at.
    """

    def __init__(self, settings: Optional[Settings] = None):
        cfg = settings or default_settings
        self.header_name = cfg.csrf_header
        self.cookie_name = cfg.csrf_cookie_name

    async def __call__(self, ctx, call_next: CallNext) -> Response:
        request = ctx.request
        try:
            validate_csrf(
                request.method,
                request.headers.get(self.header_name),
                request.cookies.get(self.cookie_name),
            )
        except CsrfInvalidError as exc:
            logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
            raise
        return await call_next(ctx)
