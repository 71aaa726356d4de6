"""
delivery_auth.services.sign_in_service

Phone/OTP sign-in flow.

Responsibilities:
- Start a verification and hand the pending handle back to the caller.
- Confirm the code and complete authentication through `AuthService`.
"""

from __future__ import annotations

from delivery_auth.auth.models import PendingVerification
from delivery_auth.auth.phone import normalize_indian_phone_number
from delivery_auth.clients.identity import PhoneIdentityClient
from delivery_auth.observability.logging import get_logger
from delivery_auth.services.auth_service import AuthService
from delivery_auth.session.models import CompletionResult

log = get_logger(__name__)


class SignInService:
    def __init__(self, *, auth: AuthService, identity: PhoneIdentityClient) -> None:
        self._auth = auth
        self._identity = identity

    async def start(self, phone_number: str) -> PendingVerification:
        pending = await self._identity.start_phone_sign_in(phone_number)
        # Remembered so a restarted client can offer "enter the code" again.
        await self._auth.store.set_pending_verification(pending.verification_id)
        return pending

    async def confirm(self, pending: PendingVerification, code: str) -> CompletionResult:
        identity = await self._identity.confirm_code(pending, code)
        result = await self._auth.complete_authentication(pending.phone_number, identity)
        if not result.success:
            log.warning("sign_in_completion_failed", error=result.error)
        return result

    async def resume_pending(self, phone_number: str) -> PendingVerification | None:
        verification_id = await self._auth.store.pending_verification()
        if verification_id is None:
            return None
        return PendingVerification(
            verification_id=verification_id,
            phone_number=normalize_indian_phone_number(phone_number),
        )


# --- Module Notes -----------------------------------------------------------
# Errors from the identity provider (bad code, expired code, rate limits) propagate to
# the caller as IdentityProviderError so the sign-in screen can show the message.
