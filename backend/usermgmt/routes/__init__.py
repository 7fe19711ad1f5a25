# Routes package init
"""
UserMgmt Backend — API Routes Package
=======================================

Route Inventory:
    - health.py:         GET  /health                              (public chain)
    - csrf.py:           GET  /api/csrf                            (public chain)
    - accounts.py:       GET  /api/accounts                        (protected chain)
                         POST /api/accounts
                         POST /api/account/switch
    - organizations.py:  GET  /api/organizations/{org_id}/members  (protected chain)
                         POST /api/organizations/{org_id}/leave
    - feedback.py:       POST /api/feedback                        (protected chain)

Every handler is `async def handler(ctx: RequestContext)` wrapped by a
middleware chain; none of them builds an error response itself.
"""
