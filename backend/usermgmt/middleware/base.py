"""
UserMgmt Backend — Pipeline Step Contract
===========================================

What:  The shape every middleware step has.
How:   A step is an async callable taking the request context and a
       `call_next` continuation. It either returns a response directly
       (short-circuit) or awaits `call_next(ctx)` and returns (optionally
       decorating) what the rest of the chain produced.

    async def step(ctx: RequestContext, call_next: CallNext) -> Response

Steps with configuration are written as PipelineStep subclasses; a bare
async function with the same signature works too.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable, Union

from starlette.responses import Response

if TYPE_CHECKING:
    from usermgmt.middleware.context import RequestContext

CallNext = Callable[["RequestContext"], Awaitable[Response]]
StepFunction = Callable[["RequestContext", CallNext], Awaitable[Response]]


class PipelineStep(ABC):
    """Base class for configurable middleware steps."""

    # Only ErrorBoundary sets this; MiddlewareChain checks it at build time.
    is_error_boundary = False

    @abstractmethod
    async def __call__(self, ctx: "RequestContext", call_next: CallNext) -> Response:
        """Handle the request or delegate to the next step."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


MiddlewareStep = Union[PipelineStep, StepFunction]
