"""
UserMgmt Backend — Application Package Initializer
====================================================

What: Backend of a multi-tenant account management app (accounts,
      organizations, feedback) built on FastAPI.

Architecture Note:

    ┌─────────────────────────────────────┐
    │   Middleware Chain (Pipeline)       │  ← correlation, CSRF, auth, errors
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← membership rules, persistence
    └─────────────────────────────────────┘

    Every request crosses the pipeline before a route sees it, and every
    failure leaves through the pipeline's ErrorBoundary.
"""

__version__ = "1.0.0"
