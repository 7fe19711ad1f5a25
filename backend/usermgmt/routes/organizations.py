"""
UserMgmt Backend — Organization Route Handlers
================================================

What:  GET /api/organizations/{org_id}/members and
       POST /api/organizations/{org_id}/leave.
How:   Path parameters come from ctx.path_params. Membership checks live in
       the service, which raises auth/forbidden or resource/not_found.
"""

from fastapi import APIRouter

from usermgmt.middleware.chain import protected_chain
from usermgmt.middleware.context import RequestContext
from usermgmt.schemas.account import (
    ErrorEnvelope,
    MemberListResponse,
    MemberResponse,
    SuccessResponse,
)

router = APIRouter(prefix="/api/organizations", tags=["Organizations"])

ERROR_RESPONSES = {
    401: {"model": ErrorEnvelope},
    403: {"model": ErrorEnvelope},
    404: {"model": ErrorEnvelope},
}


@router.get(
    "/{org_id}/members",
    response_model=MemberListResponse,
    responses=ERROR_RESPONSES,
    summary="List an organization's members",
)
@protected_chain.route()
async def list_members(ctx: RequestContext) -> MemberListResponse:
    auth = ctx.require_auth()
    members = await ctx.services.organizations.list_members(
        ctx.path_params["org_id"], auth.user_id
    )
    return MemberListResponse(members=[MemberResponse.model_validate(m) for m in members])


@router.post(
    "/{org_id}/leave",
    response_model=SuccessResponse,
    responses=ERROR_RESPONSES,
    summary="Leave an organization",
)
@protected_chain.route()
async def leave_organization(ctx: RequestContext) -> SuccessResponse:
    auth = ctx.require_auth()
    await ctx.services.organizations.leave_organization(
        ctx.path_params["org_id"], auth.user_id
    )
    return SuccessResponse()
