"""
delivery_auth.session.models

Session domain models.

Responsibilities:
- Define the cached `UserRecord` shape (camelCase on the wire and in the cache).
- Define the `AuthStateResult` contract every screen reads to decide navigation.
- Define the state, role, logout-reason and session-event vocabularies.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LOGIN_PATH = "/login"


class Role(enum.StrEnum):
    customer = "customer"
    admin = "admin"
    delivery = "delivery"


class AuthState(enum.StrEnum):
    # Values are the labels cached under `authState` and returned to screens.
    authenticated = "authenticated"
    unauthenticated = "unauthenticated"
    needs_community_selection = "needsCommunitySelection"
    needs_role_selection = "needsRoleSelection"
    profile_incomplete = "profileIncomplete"


class LogoutReason(enum.StrEnum):
    inactivity = "inactivity"
    session_expired = "sessionExpired"
    session_invalid = "sessionInvalid"


class SessionEvent(enum.StrEnum):
    established = "ESTABLISHED"
    cleared = "CLEARED"


class SyncStatus(enum.StrEnum):
    synced = "synced"
    cleared = "cleared"
    no_action = "noActionNeeded"
    failed = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Profile(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str | None = None
    email: str | None = None
    community_id: str | None = None
    apartment_number: str | None = None
    is_profile_complete: bool | None = False

    @property
    def is_complete(self) -> bool:
        """
        The completion flag only counts when the fields it promises are present;
        the remote store does not enforce that, so a bare flag reads as incomplete.
        """

        return bool(self.is_profile_complete and self.community_id and self.apartment_number)


class UserRecord(_CamelModel):
    """
    Authoritative per-user document (owned by the document store), cached locally.
    Unknown remote fields (createdAt, updatedAt, ...) are kept as extras.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    user_id: str
    phone_number: str = ""
    role: str | None = None
    profile: Profile | None = None
    last_login_at: str | None = None

    @property
    def community_id(self) -> str | None:
        return self.profile.community_id if self.profile is not None else None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def empty_profile() -> Profile:
    return Profile(name="", email="", community_id="", apartment_number="", is_profile_complete=False)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    token: str | None = None
    user_record: UserRecord | None = None
    role: str | None = None
    selected_community: str | None = None
    login_timestamp: int | None = None
    expired: bool = False

    @property
    def has_session(self) -> bool:
        return bool(self.token)


class SyncResult(_CamelModel):
    status: SyncStatus
    error: str | None = None


class AuthStateResult(_CamelModel):
    is_authenticated: bool
    auth_state: AuthState
    user_data: UserRecord | None = None
    user_role: str | None = None
    redirect_to: str = Field(default=LOGIN_PATH, min_length=1)
    reason: LogoutReason | None = None
    error: str | None = None
    initialized: bool | None = None
    sync: SyncResult | None = None

    @classmethod
    def unauthenticated(
        cls,
        *,
        reason: LogoutReason | None = None,
        error: str | None = None,
    ) -> AuthStateResult:
        redirect_to = LOGIN_PATH if reason is None else login_redirect(reason)
        return cls(
            is_authenticated=False,
            auth_state=AuthState.unauthenticated,
            redirect_to=redirect_to,
            reason=reason,
            error=error,
        )


class SessionValidation(_CamelModel):
    is_valid: bool
    reason: str | None = None
    auth_state: AuthStateResult | None = None


class CompletionResult(_CamelModel):
    success: bool
    redirect_to: str = Field(default=LOGIN_PATH, min_length=1)
    is_new_user: bool = False
    user: UserRecord | None = None
    error: str | None = None


def login_redirect(reason: LogoutReason) -> str:
    return f"{LOGIN_PATH}?reason={reason.value}"


# --- Module Notes -----------------------------------------------------------
# Field names are snake_case in Python and camelCase when serialized, so cached
# records written by older clients (and the document store's own JSON) parse as-is.
