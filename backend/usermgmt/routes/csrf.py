"""
UserMgmt Backend — CSRF Token Issuance Route
==============================================

What:  GET /api/csrf, issues the session's anti-forgery token.
Who:   Called only by CsrfTokenManager, once per browser session.
How:   Mounted on the public chain (no CSRF check, no auth): a session
       has to be able to obtain its token before it can send one.
"""

from fastapi import APIRouter

from usermgmt.config import settings
from usermgmt.middleware.chain import public_chain
from usermgmt.middleware.context import RequestContext
from usermgmt.middleware.csrf import issue_csrf_token
from usermgmt.schemas.account import CsrfTokenResponse

router = APIRouter(tags=["CSRF"])


@router.get(
    settings.csrf_token_path,
    response_model=CsrfTokenResponse,
    summary="Issue a CSRF token for this session",
)
@public_chain.route()
async def get_csrf_token(ctx: RequestContext):
    return issue_csrf_token()
