# Services package init
"""
UserMgmt Backend — Services Layer
===================================

What:  Business logic the route handlers delegate to.
How:   The app factory puts one ServiceRegistry on app.state.services; the
       middleware chain hands it to handlers as ctx.services. Swapping the
       registry (tests, another backing provider) swaps every service at once.

Service Inventory:
    - AccountService:      list/create accounts, switch active account
    - OrganizationService: list members, leave organization
    - FeedbackService:     store user feedback
"""

from dataclasses import dataclass
from typing import Optional

from usermgmt.services.base import AccountService, FeedbackService, OrganizationService
from usermgmt.services.memory import (
    InMemoryAccountService,
    InMemoryFeedbackService,
    InMemoryOrganizationService,
    InMemoryStore,
)


@dataclass
class ServiceRegistry:
    accounts: AccountService
    organizations: OrganizationService
    feedback: FeedbackService


def build_in_memory_registry(store: Optional[InMemoryStore] = None) -> ServiceRegistry:
    store = store or InMemoryStore()
    return ServiceRegistry(
        accounts=InMemoryAccountService(store),
        organizations=InMemoryOrganizationService(store),
        feedback=InMemoryFeedbackService(store),
    )
