"""
UserMgmt Backend — Abstract Service Interfaces
================================================

What:  Contracts for the account, organization and feedback services the
       route handlers call.
Why:   The real implementations live in the managed backend (database,
       storage, auth provider). Route handlers depend only on these
       interfaces, so the backing provider can be swapped without touching
       the pipeline or the routes.
How:   Abstract base classes plus the plain records they exchange.

Authorization:
    Services own "may this user touch that resource" decisions and raise
    ForbiddenError (auth/forbidden) or NotFoundError (resource/not_found).
    The ErrorBoundary translates both like any other pipeline error.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


@dataclass
class Account:
    id: str
    name: str
    type: str  # "personal" or "organization"
    owner_id: str
    created_at: datetime


@dataclass
class Membership:
    account_id: str
    user_id: str
    role: str  # "owner" or "member"
    joined_at: datetime


@dataclass
class Feedback:
    id: str
    user_id: str
    category: str
    message: str
    screenshot_url: Optional[str]
    created_at: datetime


class AccountService(ABC):
    """Accounts visible to a user and the user's active account."""

    @abstractmethod
    async def list_accounts(self, user_id: str) -> List[Account]:
        """Personal account first, then organizations the user belongs to."""

    @abstractmethod
    async def create_organization(self, name: str, owner_id: str) -> Account:
        """Create an organization account with `owner_id` as its owner."""

    @abstractmethod
    async def switch_account(self, user_id: str, account_id: str) -> None:
        """
        Make `account_id` the user's active account.

        Raises:
            NotFoundError:  No such account
            ForbiddenError: The user is not a member of it
        """

    @abstractmethod
    async def get_active_account_id(self, user_id: str) -> Optional[str]:
        ...


class OrganizationService(ABC):
    """Membership operations on organization accounts."""

    @abstractmethod
    async def list_members(self, org_id: str, user_id: str) -> List[Membership]:
        """
        Members of an organization, visible to its members only.

        Raises:
            NotFoundError:  No such organization
            ForbiddenError: `user_id` is not a member
        """

    @abstractmethod
    async def leave_organization(self, org_id: str, user_id: str) -> None:
        """
        Remove `user_id` from the organization.

        Raises:
            NotFoundError:  No such organization, or the user is not a member
            ForbiddenError: The user owns the organization
        """


class FeedbackService(ABC):
    @abstractmethod
    async def submit(
        self,
        user_id: str,
        category: str,
        message: str,
        screenshot_url: Optional[str] = None,
    ) -> Feedback:
        ...
