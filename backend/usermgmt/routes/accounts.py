"""
UserMgmt Backend — Account Route Handlers
===========================================

What:  GET/POST /api/accounts and POST /api/account/switch.
How:   Each handler is mounted on the protected chain, so by the time it
       runs the CSRF check has passed (for POST), ctx.auth is set and
       ctx.body holds the validated request model.

Routes stay thin: identity from ctx, data from ctx.body, work delegated to
ctx.services.accounts.
"""

from fastapi import APIRouter

from usermgmt.middleware.chain import protected_chain
from usermgmt.middleware.context import RequestContext
from usermgmt.schemas.account import (
    AccountListResponse,
    AccountResponse,
    CreateOrganizationRequest,
    ErrorEnvelope,
    OrganizationResponse,
    SuccessResponse,
    SwitchAccountRequest,
)

router = APIRouter(prefix="/api", tags=["Accounts"])

ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope},
    401: {"model": ErrorEnvelope},
    403: {"model": ErrorEnvelope},
}


@router.get(
    "/accounts",
    response_model=AccountListResponse,
    responses=ERROR_RESPONSES,
    summary="List the caller's accounts",
)
@protected_chain.route()
async def list_accounts(ctx: RequestContext) -> AccountListResponse:
    auth = ctx.require_auth()
    service = ctx.services.accounts
    accounts = await service.list_accounts(auth.user_id)
    return AccountListResponse(
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        active_account_id=await service.get_active_account_id(auth.user_id),
    )


@router.post(
    "/accounts",
    response_model=OrganizationResponse,
    responses=ERROR_RESPONSES,
    summary="Create an organization account",
)
@protected_chain.route(body=CreateOrganizationRequest)
async def create_organization(ctx: RequestContext) -> OrganizationResponse:
    auth = ctx.require_auth()
    organization = await ctx.services.accounts.create_organization(
        name=ctx.body.name, owner_id=auth.user_id
    )
    return OrganizationResponse(organization=AccountResponse.model_validate(organization))


@router.post(
    "/account/switch",
    response_model=SuccessResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorEnvelope}},
    summary="Switch the caller's active account",
)
@protected_chain.route(body=SwitchAccountRequest)
async def switch_account(ctx: RequestContext) -> SuccessResponse:
    auth = ctx.require_auth()
    await ctx.services.accounts.switch_account(auth.user_id, ctx.body.account_id)
    return SuccessResponse()
