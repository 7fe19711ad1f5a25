"""
UserMgmt Backend — Request Context
====================================

What:  The per-request carrier handed from step to step and finally to the
       route handler.
Why:   Correlation id, auth context and the validated body are request-scoped
       facts. Passing them as a parameter keeps two concurrent requests from
       ever seeing each other's identity.
How:   A plain dataclass created by the chain for every request. Identity
       fields are write-once: attaching a second auth context or correlation
       id raises instead of silently replacing the first.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from starlette.requests import Request

from usermgmt.middleware.auth import AuthContext


@dataclass
class RequestContext:
    """
    State for one request's trip through a middleware chain.

    Attributes:
        request:  The inbound Starlette request
        services: Process-wide service registry (app.state.services)
        body:     Parsed and validated body, set by BodyValidationStep
    """

    request: Request
    services: Any = None
    body: Any = None
    _correlation_id: Optional[str] = field(default=None, repr=False)
    _auth: Optional[AuthContext] = field(default=None, repr=False)

    @property
    def correlation_id(self) -> Optional[str]:
        return self._correlation_id

    @property
    def auth(self) -> Optional[AuthContext]:
        return self._auth

    @property
    def method(self) -> str:
        return self.request.method.upper()

    @property
    def path_params(self) -> Dict[str, Any]:
        return self.request.path_params

    def attach_correlation_id(self, correlation_id: str) -> None:
        if self._correlation_id is not None and self._correlation_id != correlation_id:
            raise RuntimeError("Correlation id is already attached to this request")
        self._correlation_id = correlation_id

    def attach_auth(self, auth: AuthContext) -> None:
        """Attach the caller's identity; an identity is never replaced mid-chain."""
        if self._auth is not None:
            raise RuntimeError("Auth context is already attached to this request")
        self._auth = auth

    def require_auth(self) -> AuthContext:
        """
        Return the auth context, for handlers mounted on an authenticated chain.

        Raises RuntimeError when the handler was mounted on a chain without an
        AuthStep: that is a wiring bug, reported as server/internal_error.
        """
        if self._auth is None:
            raise RuntimeError("Route requires an auth context but its chain has no AuthStep")
        return self._auth
