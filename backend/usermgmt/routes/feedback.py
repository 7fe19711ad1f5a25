"""
UserMgmt Backend — Feedback Route Handler
===========================================

What:  POST /api/feedback: stores feedback from a signed-in user.
"""

from fastapi import APIRouter

from usermgmt.middleware.chain import protected_chain
from usermgmt.middleware.context import RequestContext
from usermgmt.schemas.account import ErrorEnvelope, FeedbackRequest, SuccessResponse

router = APIRouter(prefix="/api", tags=["Feedback"])


@router.post(
    "/feedback",
    response_model=SuccessResponse,
    responses={
        400: {"model": ErrorEnvelope},
        401: {"model": ErrorEnvelope},
        403: {"model": ErrorEnvelope},
    },
    summary="Submit feedback",
)
@protected_chain.route(body=FeedbackRequest)
async def submit_feedback(ctx: RequestContext) -> SuccessResponse:
    auth = ctx.require_auth()
    body: FeedbackRequest = ctx.body
    await ctx.services.feedback.submit(
        user_id=auth.user_id,
        category=body.category,
        message=body.message,
        screenshot_url=body.screenshot_url,
    )
    return SuccessResponse()
