"""
delivery_auth.auth

Identity primitives package.

Responsibilities:
- Identity and pending-verification value types.
- Identity-provider ID token helpers.
- Phone number normalization for phone sign-in.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# This package has no I/O; the remote provider client lives in `clients.identity`.
