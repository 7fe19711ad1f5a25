"""
UserMgmt Backend — Correlation Context
========================================

What:  Resolves a correlation id for each request and makes it ambiently
       available to everything that runs on that request's behalf.
Why:   Every log line, every error envelope and every outbound call made
       while serving a request can be tied back to one logical operation.
How:   The id is resolved once (reuse the caller's, derive from a parent, or
       generate), stored in a ContextVar for the duration of the request, and
       echoed in the response header.
Who:   CorrelationStep runs second in every chain, right inside the
       ErrorBoundary. ApiClient and the logging filter read the ambient id.

Resolution rules:
    1. Inbound header present  → reused verbatim (the caller owns the trace)
    2. Parent id in scope      → "<parent>.<fresh>" (nested/internal call)
    3. Otherwise               → fresh root id (UUID4)

    Child ids only ever extend their parent, so "startswith(root + '.')"
    finds every operation a root request fanned out into.

Scoping:
    asyncio gives each task a copy of the current context, and
    correlation_scope() resets the variable on exit. A request's id is
    therefore visible to the coroutines it awaits and the tasks it spawns,
    but never to a request handled concurrently on the same thread.
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from starlette.responses import Response

from usermgmt.config import settings
from usermgmt.middleware.base import CallNext, PipelineStep

# ── Context Variable ──────────────────────────────────────────────────────
# Coroutine-local storage for the correlation id of the request being served.
_correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    """Fresh root identifier."""
    return str(uuid.uuid4())


def resolve_correlation_id(
    incoming: Optional[str] = None, parent_id: Optional[str] = None
) -> str:
    """
    Resolve the correlation id for an operation.

    Args:
        incoming:  Value of the inbound correlation header, if any. Blank
                   values count as absent.
        parent_id: Id of the enclosing operation for nested/internal calls.

    Returns:
        The inbound id unchanged, a dotted child of parent_id, or a new root.
    """
    if incoming is not None and incoming.strip():
        return incoming
    if parent_id:
        return f"{parent_id}.{generate_correlation_id()}"
    return generate_correlation_id()


def current_correlation_id() -> Optional[str]:
    """The correlation id of the request currently being served, if any."""
    return _correlation_id_var.get()


def child_correlation_id() -> str:
    """Derive an id for a nested operation of the current request."""
    return resolve_correlation_id(parent_id=current_correlation_id())


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Make a correlation id ambient for the duration of the block.

    With no argument a child of the current id is derived (or a fresh root
    when nothing is in scope), which is what background fan-out wants:

        with correlation_scope() as cid:
            await notify_members(org_id)   # logs carry "<root>.<child>"
    """
    cid = correlation_id or child_correlation_id()
    token = _correlation_id_var.set(cid)
    try:
        yield cid
    finally:
        _correlation_id_var.reset(token)


class CorrelationIdLogFilter(logging.Filter):
    """
    Adds `correlation_id` to every log record.

    Attached to the root handler in setup_logging() so the format string can
    use %(correlation_id)s. Records logged outside any request get "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = current_correlation_id() or "-"
        return True


class CorrelationStep(PipelineStep):
    """
    Establishes the correlation context for the rest of the chain.

    Behavior:
        1. Resolve the id from the inbound header, using the ambient id as
           parent when this chain runs inside another request
        2. Attach it to the RequestContext (read by the ErrorBoundary)
        3. Run the remaining steps inside correlation_scope()
        4. Stamp the id on the response header

    Error responses are stamped by the ErrorBoundary instead, because an
    exception skips step 4.
    """

    def __init__(self, header_name: Optional[str] = None):
        self.header_name = header_name or settings.correlation_header

    async def __call__(self, ctx, call_next: CallNext) -> Response:
        incoming = ctx.request.headers.get(self.header_name)
        cid = resolve_correlation_id(incoming, parent_id=current_correlation_id())
        ctx.attach_correlation_id(cid)

        with correlation_scope(cid):
            response = await call_next(ctx)

        response.headers[self.header_name] = cid
        return response
