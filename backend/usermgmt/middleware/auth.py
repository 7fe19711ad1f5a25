"""
UserMgmt Backend — Auth Resolver
==================================

What:  Turns the credential on a request into an immutable AuthContext.
Why:   Route handlers need "who is calling" as a plain value, handed to them
       as a parameter, never read from a global.
How:   Extract the bearer token (Authorization header, then the access-token
       cookie), verify it with a CredentialVerifier, wrap the claims.
Who:   AuthStep, the last identity step of every protected chain.

Failure modes:
    no credential / bad signature / malformed  → auth/unauthenticated (401)
    well-formed credential past its expiry     → auth/expired (401)

    auth/forbidden is never raised here. This component authenticates;
    deciding what the caller may touch is the route handler's job.

Verifier design:
    CredentialVerifier is an abstract base so the identity provider can be
    swapped without touching the resolver. The shipped JWTCredentialVerifier
    validates provider-issued HS256 access tokens locally with PyJWT. A
    verifier that calls the provider over the network fits the same async
    interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import jwt
from starlette.requests import Request
from starlette.responses import Response

from usermgmt.config import Settings, settings as default_settings
from usermgmt.exceptions import CredentialExpiredError, UnauthenticatedError
from usermgmt.middleware.base import CallNext, PipelineStep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity of the caller, scoped to one request."""

    user_id: str
    claims: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Read-only view over a private copy: handlers can't mutate the claims
        object.__setattr__(self, "claims", MappingProxyType(dict(self.claims)))


class CredentialVerifier(ABC):
    """
    Abstract credential verifier.

    Implementations return the credential's claims (which must include
    "sub") or raise UnauthenticatedError / CredentialExpiredError.
    """

    @abstractmethod
    async def verify(self, credential: str) -> Dict[str, Any]:
        """Validate a raw credential and return its claims."""


class JWTCredentialVerifier(CredentialVerifier):
    """Validates identity-provider access tokens signed with a shared secret."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        self.secret = default_settings.auth_jwt_secret if secret is None else secret
        self.algorithm = algorithm or default_settings.auth_jwt_algorithm
        self.audience = default_settings.auth_jwt_audience if audience is None else audience

    async def verify(self, credential: str) -> Dict[str, Any]:
        if not self.secret:
            raise UnauthenticatedError("Authentication is not configured on this server")

        try:
            claims = jwt.decode(
                credential,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience or None,
                options={
                    "require": ["exp", "sub"],
                    "verify_aud": bool(self.audience),
                },
            )
        except jwt.ExpiredSignatureError as exc:
            raise CredentialExpiredError() from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthenticatedError(
                "Invalid credential", context={"reason": str(exc)}
            ) from exc

        if not isinstance(claims.get("sub"), str) or not claims["sub"]:
            raise UnauthenticatedError("Credential has no subject")
        return claims


class AuthResolver:
    """
    Resolves an AuthContext from a request.

    Idempotent and side-effect free: it reads the credential and nothing
    else, so resolving the same request twice yields equal contexts.
    """

    def __init__(
        self,
        verifier: Optional[CredentialVerifier] = None,
        settings: Optional[Settings] = None,
    ):
        cfg = settings or default_settings
        self.verifier = verifier or JWTCredentialVerifier(
            secret=cfg.auth_jwt_secret,
            algorithm=cfg.auth_jwt_algorithm,
            audience=cfg.auth_jwt_audience,
        )
        self.cookie_name = cfg.auth_cookie_name

    def extract_credential(self, request: Request) -> Optional[str]:
        """Bearer token from the Authorization header, else the access-token cookie."""
        authorization = request.headers.get("Authorization", "")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
        return request.cookies.get(self.cookie_name) or None

    async def resolve(self, request: Request) -> AuthContext:
        credential = self.extract_credential(request)
        if credential is None:
            raise UnauthenticatedError()

        claims = await self.verifier.verify(credential)
        return AuthContext(user_id=claims["sub"], claims=claims)


class AuthStep(PipelineStep):
    """Attaches the resolved AuthContext to the request context."""

    def __init__(self, resolver: Optional[AuthResolver] = None):
        self._resolver = resolver

    @property
    def resolver(self) -> AuthResolver:
        # Built lazily so settings overridden after import (tests, lifespan) apply
        if self._resolver is None:
            self._resolver = AuthResolver()
        return self._resolver

    async def __call__(self, ctx, call_next: CallNext) -> Response:
        auth = await self.resolver.resolve(ctx.request)
        ctx.attach_auth(auth)
        logger.debug("Authenticated user %s", auth.user_id)
        return await call_next(ctx)
