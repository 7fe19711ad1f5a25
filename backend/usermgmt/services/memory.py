"""
UserMgmt Backend — In-Memory Service Implementations
======================================================

What:  Process-local implementations of the service interfaces.
Why:   Lets the API run end to end in development and tests without the
       managed backend.
How:   One InMemoryStore holds accounts, memberships, active-account
       selections and feedback; the three services share it. Mutations never
       await, so concurrent requests on the event loop can't interleave
       inside one.

Not for production: data lives as long as the process.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from usermgmt.exceptions import ForbiddenError, NotFoundError
from usermgmt.services.base import (
    Account,
    AccountService,
    Feedback,
    FeedbackService,
    Membership,
    OrganizationService,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStore:
    def __init__(self) -> None:
        self.accounts: Dict[str, Account] = {}
        # account_id → user_id → Membership
        self.memberships: Dict[str, Dict[str, Membership]] = {}
        self.active_accounts: Dict[str, str] = {}
        self.feedback: List[Feedback] = []

    def personal_account(self, user_id: str) -> Account:
        """The user's personal account, created on first use."""
        account_id = f"personal-{user_id}"
        account = self.accounts.get(account_id)
        if account is None:
            account = Account(
                id=account_id,
                name="Personal",
                type="personal",
                owner_id=user_id,
                created_at=_now(),
            )
            self.accounts[account_id] = account
            self.memberships[account_id] = {
                user_id: Membership(account_id, user_id, "owner", account.created_at)
            }
        return account

    def organization(self, org_id: str) -> Account:
        account = self.accounts.get(org_id)
        if account is None or account.type != "organization":
            raise NotFoundError(resource="organization", resource_id=org_id)
        return account

    def is_member(self, account_id: str, user_id: str) -> bool:
        return user_id in self.memberships.get(account_id, {})


class InMemoryAccountService(AccountService):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def list_accounts(self, user_id: str) -> List[Account]:
        personal = self.store.personal_account(user_id)
        organizations = [
            account
            for account in self.store.accounts.values()
            if account.type == "organization" and self.store.is_member(account.id, user_id)
        ]
        organizations.sort(key=lambda a: a.created_at)
        return [personal, *organizations]

    async def create_organization(self, name: str, owner_id: str) -> Account:
        account = Account(
            id=str(uuid.uuid4()),
            name=name,
            type="organization",
            owner_id=owner_id,
            created_at=_now(),
        )
        self.store.accounts[account.id] = account
        self.store.memberships[account.id] = {
            owner_id: Membership(account.id, owner_id, "owner", account.created_at)
        }
        logger.info("Organization %s created by %s", account.id, owner_id)
        return account

    async def switch_account(self, user_id: str, account_id: str) -> None:
        # Materialize the personal account so switching back to it works
        self.store.personal_account(user_id)
        if account_id not in self.store.accounts:
            raise NotFoundError(resource="account", resource_id=account_id)
        if not self.store.is_member(account_id, user_id):
            raise ForbiddenError("You are not a member of this account")
        self.store.active_accounts[user_id] = account_id

    async def get_active_account_id(self, user_id: str) -> Optional[str]:
        return self.store.active_accounts.get(user_id) or self.store.personal_account(user_id).id


class InMemoryOrganizationService(OrganizationService):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def list_members(self, org_id: str, user_id: str) -> List[Membership]:
        self.store.organization(org_id)
        if not self.store.is_member(org_id, user_id):
            raise ForbiddenError("Only members can view this organization's members")
        members = list(self.store.memberships[org_id].values())
        members.sort(key=lambda m: m.joined_at)
        return members

    async def leave_organization(self, org_id: str, user_id: str) -> None:
        organization = self.store.organization(org_id)
        if not self.store.is_member(org_id, user_id):
            raise NotFoundError(resource="membership", resource_id=org_id)
        if organization.owner_id == user_id:
            raise ForbiddenError("The owner cannot leave an organization")

        del self.store.memberships[org_id][user_id]
        if self.store.active_accounts.get(user_id) == org_id:
            self.store.active_accounts.pop(user_id)
        logger.info("User %s left organization %s", user_id, org_id)


class InMemoryFeedbackService(FeedbackService):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def submit(
        self,
        user_id: str,
        category: str,
        message: str,
        screenshot_url: Optional[str] = None,
    ) -> Feedback:
        feedback = Feedback(
            id=str(uuid.uuid4()),
            user_id=user_id,
            category=category,
            message=message,
            screenshot_url=screenshot_url,
            created_at=_now(),
        )
        self.store.feedback.append(feedback)
        return feedback
