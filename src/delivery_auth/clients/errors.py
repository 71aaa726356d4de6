"""
delivery_auth.clients.errors

Exceptions raised at the remote-collaborator boundary.

Responsibilities:
- Carry a stable error code plus a user-facing message from provider/store failures.
"""

from __future__ import annotations


class RemoteServiceError(Exception):
    def __init__(self, message: str, *, code: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class IdentityProviderError(RemoteServiceError):
    pass


class DocumentStoreError(RemoteServiceError):
    pass


# --- Module Notes -----------------------------------------------------------
# AuthService catches these at its boundary; only the sign-in routes surface them to
# callers (as 4xx/5xx with `code` in the body).
