"""
delivery_auth.auth.models

Identity value types.

Responsibilities:
- Define the opaque `Identity` issued by the remote authentication provider.
- Define the caller-owned `PendingVerification` handle for an in-flight OTP sign-in.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Identity:
    """
    Credential handle from the identity provider. `id` is the provider's stable user id
    and doubles as the session token in the local cache.
    """

    id: str
    phone_number: str | None = None
    id_token: str | None = field(default=None, repr=False)
    expires_at: int | None = None  # epoch seconds

    def is_expired(self, now_s: float) -> bool:
        return self.expires_at is not None and now_s >= self.expires_at


@dataclass(frozen=True, slots=True)
class PendingVerification:
    """
    Returned by `start_phone_sign_in` and handed back to `confirm_code`; the caller owns
    its lifetime (there is no process-wide slot holding it).
    """

    verification_id: str
    phone_number: str


# --- Module Notes -----------------------------------------------------------
# Keep these types free of client/service imports; they cross every layer.
