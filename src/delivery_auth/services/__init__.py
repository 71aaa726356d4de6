"""
delivery_auth.services

Service-layer package.

Responsibilities:
- Own the session lifecycle (reconciliation, state queries, mutations, sign-out).
- Drive the phone sign-in flow across the identity provider and the session cache.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services should be pure Python and easily testable with fake clients and stores.
