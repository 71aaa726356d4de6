"""
delivery_auth.clients

Remote collaborator clients.

Responsibilities:
- Identity provider (phone/OTP sign-in, current identity, sign-out).
- Hosted document store (user records).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The service layer depends on the Protocols defined here, never on httpx directly.
