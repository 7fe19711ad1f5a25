# Middleware package init
"""
UserMgmt Backend — Request-Processing Pipeline
================================================

What:  Everything a request passes through before business logic runs.

Two layers:
    App-level (Starlette, wraps every request):
        CORS → GZip → RequestLoggingMiddleware

    Per-route middleware chain (usermgmt.middleware.chain):
        ErrorBoundary → Correlation → CSRF → Auth → Body → Handler

    The app-level layer only observes traffic. All accept/reject decisions
    and all error envelopes come from the per-route chain.
"""

from usermgmt.middleware.auth import AuthContext, AuthResolver, AuthStep
from usermgmt.middleware.chain import (
    BodyValidationStep,
    ErrorBoundary,
    MiddlewareChain,
    compose,
    protected_chain,
    public_chain,
)
from usermgmt.middleware.context import RequestContext
from usermgmt.middleware.correlation import CorrelationStep
from usermgmt.middleware.csrf import CsrfStep

__all__ = [
    "AuthContext",
    "AuthResolver",
    "AuthStep",
    "BodyValidationStep",
    "CorrelationStep",
    "CsrfStep",
    "ErrorBoundary",
    "MiddlewareChain",
    "RequestContext",
    "compose",
    "protected_chain",
    "public_chain",
]
