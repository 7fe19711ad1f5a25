"""
UserMgmt Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract between frontend and backend.
Why:   Request bodies are validated by the chain's BodyValidationStep against
       these models; responses are serialized from them.
How:   Wire names are camelCase (the frontend's convention) through aliases;
       Python code uses snake_case. populate_by_name lets tests and services
       build models with either.

Design Decision:
    Schemas are separate from the service-layer records (services/base.py)
    so what the API exposes can be controlled independently of what the
    backing store keeps.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════
# Request Models: validated by BodyValidationStep
# ══════════════════════════════════════════════════════════════════════════


class CreateOrganizationRequest(BaseModel):
    """Body of POST /api/accounts."""

    name: str = Field(min_length=1, max_length=100, description="Organization display name")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Organization name must not be blank")
        return stripped


class SwitchAccountRequest(BaseModel):
    """Body of POST /api/account/switch."""

    account_id: str = Field(alias="accountId", min_length=1)

    model_config = {"populate_by_name": True}


class FeedbackRequest(BaseModel):
    """Body of POST /api/feedback."""

    category: str = Field(min_length=1, max_length=50)
    message: str = Field(min_length=1, max_length=5000)
    screenshot_url: Optional[str] = Field(default=None, alias="screenshotUrl")

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class AccountResponse(BaseModel):
    """A personal or organization account the caller belongs to."""

    id: str
    name: str
    type: str = Field(description="personal or organization")
    owner_id: str = Field(alias="ownerId")
    created_at: datetime = Field(alias="createdAt")

    model_config = {"from_attributes": True, "populate_by_name": True}


class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    active_account_id: Optional[str] = Field(default=None, alias="activeAccountId")

    model_config = {"populate_by_name": True}


class OrganizationResponse(BaseModel):
    organization: AccountResponse


class MemberResponse(BaseModel):
    user_id: str = Field(alias="userId")
    role: str = Field(description="owner or member")
    joined_at: datetime = Field(alias="joinedAt")

    model_config = {"from_attributes": True, "populate_by_name": True}


class MemberListResponse(BaseModel):
    members: List[MemberResponse]


class SuccessResponse(BaseModel):
    success: bool = True


class CsrfTokenResponse(BaseModel):
    """Shape returned by GET /api/csrf; documented for OpenAPI consumers."""

    csrf_token: str = Field(alias="csrfToken")

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Error Response Models: produced only by the Error Translator
# ══════════════════════════════════════════════════════════════════════════


class ErrorDetail(BaseModel):
    """
    kind:          Stable machine-readable error identifier (see ErrorKind)
    message:       Human-readable description
    correlationId: Id to quote in support requests; matches the response header
    """

    kind: str
    message: str
    correlation_id: Optional[str] = Field(default=None, alias="correlationId")

    model_config = {"populate_by_name": True}


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status")
    version: str = Field(description="Application version")
    uptime_seconds: float = Field(description="Seconds since service started")
