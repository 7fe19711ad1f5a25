"""
UserMgmt Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Mounted on the public chain, so probes get a correlation id like any
       other request but never need a token or credential.
Who:   Called by Docker health checks, load balancers, and monitoring systems.
"""

import time

from fastapi import APIRouter

from usermgmt import __version__
from usermgmt.middleware.chain import public_chain
from usermgmt.middleware.context import RequestContext
from usermgmt.schemas.account import HealthResponse

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
@public_chain.route()
async def health_check(ctx: RequestContext) -> HealthResponse:
    """
    Report liveness and version.

    The pipeline has no external dependencies of its own (credentials are
    verified locally), so a running process is a healthy one. The service
    registry being absent means the app was not built by create_app().
    """
    status = "healthy" if ctx.services is not None else "degraded"
    return HealthResponse(
        status=status,
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
