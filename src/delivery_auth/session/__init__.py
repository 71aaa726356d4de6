"""
delivery_auth.session

Session-cache package.

Responsibilities:
- Typed session data (user record, auth-state result contract).
- The pure auth-state evaluator.
- The session store over the persistent key-value store.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Nothing here talks to remote collaborators; reconciliation lives in `services`.
