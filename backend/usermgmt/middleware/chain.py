"""
UserMgmt Backend — Middleware Chain Builder
=============================================

What:  Composes an ordered list of pipeline steps and a route handler into
       one FastAPI endpoint with a single failure boundary.
Why:   Every API route needs the same gauntlet (correlation, CSRF, auth,
       body validation) in the same order, and every failure in it must come
       out in the same envelope.
How:   compose() threads a RequestContext through the steps recursively;
       MiddlewareChain validates the step order once, at import time, and
       adapts handlers into endpoints with chain.route().

Chain Order (enforced):
    Request → [ErrorBoundary] → [Correlation] → [CSRF] → [Auth] → [Body] → Handler

    1. ErrorBoundary MUST be first: it is the only place exceptions become
       responses, so it has to enclose every later step. MiddlewareChain
       refuses to build otherwise.
    2. Correlation next, so even a CSRF rejection carries the request's id.
    3. CSRF before Auth: a forged request never reaches credential lookup.
    4. Body validation last: only authenticated callers get schema feedback.

    Unlike Starlette's add_middleware (last added runs first), steps run in
    the order they are listed.

Usage:
    @router.post("/accounts")
    @protected_chain.route(body=CreateOrganizationRequest)
    async def create_organization(ctx: RequestContext) -> OrganizationResponse:
        auth = ctx.require_auth()
        ...
"""

import json
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple, Type

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ValidationError as PydanticValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from usermgmt.config import settings
from usermgmt.exceptions import ChainConfigurationError, InvalidBodyError
from usermgmt.middleware.auth import AuthResolver, AuthStep
from usermgmt.middleware.base import CallNext, MiddlewareStep, PipelineStep
from usermgmt.middleware.context import RequestContext
from usermgmt.middleware.correlation import CorrelationStep, resolve_correlation_id
from usermgmt.middleware.csrf import CsrfStep
from usermgmt.middleware.errors import translate

logger = logging.getLogger(__name__)

RouteHandler = Callable[[RequestContext], Awaitable[Any]]


# ══════════════════════════════════════════════════════════════════════════
# Built-in Steps
# ══════════════════════════════════════════════════════════════════════════

class ErrorBoundary(PipelineStep):
    """
    The chain's single failure boundary.

    Catches every Exception raised by a later step or the handler, hands it
    to the Error Translator and returns the envelope with the correlation
    header. Nothing else in the chain produces error responses.

    asyncio.CancelledError is a BaseException and passes straight through:
    once the transport has gone away there is nobody to send a response to.
    """

    is_error_boundary = True

    def __init__(self, header_name: Optional[str] = None):
        self.header_name = header_name or settings.correlation_header

    async def __call__(self, ctx: RequestContext, call_next: CallNext) -> Response:
        try:
            return await call_next(ctx)
        except Exception as exc:
            return self.handle(ctx, exc)

    def handle(self, ctx: RequestContext, exc: Exception) -> Response:
        # The correlation step may not have run (or may itself have failed)
        cid = ctx.correlation_id
        if cid is None:
            cid = resolve_correlation_id(ctx.request.headers.get(self.header_name))
            ctx.attach_correlation_id(cid)
        if hasattr(exc, "correlation_id"):
            exc.correlation_id = cid

        status, body = translate(exc, cid)
        context = getattr(exc, "context", None)
        if status >= 500:
            logger.error(
                "[%s] %s %s failed: %s | Context: %s",
                cid, ctx.method, ctx.request.url.path, exc, context,
                exc_info=exc,
            )
        else:
            logger.warning(
                "[%s] %s %s rejected: %s %s | Context: %s",
                cid, ctx.method, ctx.request.url.path, body["error"]["kind"],
                body["error"]["message"], context,
            )

        return JSONResponse(
            status_code=status,
            content=body,
            headers={self.header_name: cid},
        )


class BodyValidationStep(PipelineStep):
    """
    Parses the JSON body and validates it against a Pydantic model.

    On success the model instance is stored in ctx.body. Malformed JSON and
    schema failures both raise InvalidBodyError.
    """

    def __init__(self, model: Type[BaseModel]):
        self.model = model

    async def __call__(self, ctx: RequestContext, call_next: CallNext) -> Response:
        raw = await ctx.request.body()
        try:
            payload = json.loads(raw) if raw else None
        except (ValueError, UnicodeDecodeError, RecursionError) as exc:
            # RecursionError: nesting deeper than the parser can follow
            raise InvalidBodyError("Request body is not valid JSON") from exc

        try:
            ctx.body = self.model.model_validate(payload)
        except PydanticValidationError as exc:
            raise InvalidBodyError(
                message=f"Request body does not match {self.model.__name__}",
                context={"errors": exc.errors(include_url=False)},
            ) from exc
        return await call_next(ctx)

    def __repr__(self) -> str:
        return f"BodyValidationStep({self.model.__name__})"


# ══════════════════════════════════════════════════════════════════════════
# Composition
# ══════════════════════════════════════════════════════════════════════════

def render_result(result: Any) -> Response:
    """Turn a handler's return value into a response."""
    if isinstance(result, Response):
        return result
    if result is None:
        return Response(status_code=204)
    return JSONResponse(content=jsonable_encoder(result, by_alias=True))


def compose(
    steps: Sequence[MiddlewareStep], handler: RouteHandler
) -> Callable[[RequestContext], Awaitable[Response]]:
    """
    Build one callable that runs `steps` in order and then `handler`.

    Each step receives a `call_next` bound to the next position. A step that
    returns without calling it short-circuits the rest of the chain.
    """
    steps = tuple(steps)

    async def dispatch(index: int, ctx: RequestContext) -> Response:
        if index == len(steps):
            return render_result(await handler(ctx))
        step = steps[index]
        return await step(ctx, _once(partial(dispatch, index + 1), step))

    return partial(dispatch, 0)


def _once(call_next: CallNext, step: MiddlewareStep) -> CallNext:
    """Guard that a step delegates at most once."""
    called = False

    async def guarded(ctx: RequestContext) -> Response:
        nonlocal called
        if called:
            raise RuntimeError(f"{step!r} called call_next more than once")
        called = True
        return await call_next(ctx)

    return guarded


class MiddlewareChain:
    """
    An ordered, validated list of pipeline steps.

    Construction enforces that the ErrorBoundary is registered first and
    exactly once, so the failure boundary wraps every other step.
    """

    def __init__(self, *steps: MiddlewareStep):
        self.steps: Tuple[MiddlewareStep, ...] = tuple(steps)
        self._validate()

    def _validate(self) -> None:
        if not self.steps or not getattr(self.steps[0], "is_error_boundary", False):
            raise ChainConfigurationError(
                "The first step of a middleware chain must be an ErrorBoundary"
            )
        extra = [s for s in self.steps[1:] if getattr(s, "is_error_boundary", False)]
        if extra:
            raise ChainConfigurationError(
                "A middleware chain has exactly one ErrorBoundary, at the front"
            )

    def extend(self, *steps: MiddlewareStep) -> "MiddlewareChain":
        """A new chain with `steps` appended after this chain's steps."""
        return MiddlewareChain(*self.steps, *steps)

    def build(
        self, handler: RouteHandler, body: Optional[Type[BaseModel]] = None
    ) -> Callable[[RequestContext], Awaitable[Response]]:
        steps = self.steps + ((BodyValidationStep(body),) if body is not None else ())
        return compose(steps, handler)

    def route(
        self, body: Optional[Type[BaseModel]] = None
    ) -> Callable[[RouteHandler], Callable[[Request], Awaitable[Response]]]:
        """
        Decorator adapting `async handler(ctx)` into a FastAPI endpoint.

        The endpoint takes only the Request: FastAPI must not try to inject
        the handler's own parameters, so the handler's signature is not
        copied onto it.
        """

        def decorator(handler: RouteHandler) -> Callable[[Request], Awaitable[Response]]:
            pipeline = self.build(handler, body=body)

            async def endpoint(request: Request) -> Response:
                ctx = RequestContext(
                    request=request,
                    services=getattr(request.app.state, "services", None),
                )
                return await pipeline(ctx)

            endpoint.__name__ = handler.__name__
            endpoint.__qualname__ = handler.__qualname__
            endpoint.__doc__ = handler.__doc__
            endpoint.__module__ = handler.__module__
            return endpoint

        return decorator

    def __repr__(self) -> str:
        return "MiddlewareChain(" + " → ".join(repr(s) for s in self.steps) + ")"


def build_public_chain() -> MiddlewareChain:
    """Boundary and correlation only: health checks and token issuance."""
    return MiddlewareChain(ErrorBoundary(), CorrelationStep())


def build_protected_chain(resolver: Optional[AuthResolver] = None) -> MiddlewareChain:
    """The full pipeline for authenticated API routes."""
    return MiddlewareChain(
        ErrorBoundary(),
        CorrelationStep(),
        CsrfStep(),
        AuthStep(resolver),
    )


public_chain = build_public_chain()
protected_chain = build_protected_chain()
