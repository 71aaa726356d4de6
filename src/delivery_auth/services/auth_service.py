"""
delivery_auth.services.auth_service

Session lifecycle service.

Responsibilities:
- Reconcile the local session cache with the identity provider at process start.
- Answer "where should this user be routed right now" (`AuthStateResult`), applying the
  absolute session expiry before the evaluator.
- Complete phone sign-in by looking up or creating the user record and caching it.
- Apply role / community / profile updates through the session store's `patch`.
- Validate the session against the identity provider and sign out.
- Publish session events so monitors can arm and disarm their timers.

Every public method catches internally: queries fail closed to an unauthenticated
result, mutations return False, sign-out always clears local state.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from delivery_auth.auth.models import Identity
from delivery_auth.clients.documents import DocumentStore
from delivery_auth.clients.identity import IdentityProvider
from delivery_auth.clock import Clock, epoch_ms, iso_from_ms
from delivery_auth.observability.logging import get_logger
from delivery_auth.session.evaluator import evaluate, evaluate_record, usable_role
from delivery_auth.session.models import (
    AuthStateResult,
    CompletionResult,
    LogoutReason,
    Profile,
    SessionEvent,
    SessionValidation,
    SyncResult,
    SyncStatus,
    UserRecord,
    empty_profile,
)
from delivery_auth.session.store import RecordMutator, SessionStore
from delivery_auth.settings import Settings

log = get_logger(__name__)

SessionListener = Callable[[SessionEvent], None]

# Profile patch keys may be given in snake_case or camelCase.
_PROFILE_ALIASES: dict[str, str] = {
    name: field.alias or name for name, field in Profile.model_fields.items()
}


class AuthService:
    def __init__(
        self,
        *,
        store: SessionStore,
        identity: IdentityProvider,
        documents: DocumentStore,
        settings: Settings,
        clock: Clock = epoch_ms,
    ) -> None:
        self._store = store
        self._identity = identity
        self._documents = documents
        self._settings = settings
        self._clock = clock
        self._listeners: list[SessionListener] = []

    @property
    def store(self) -> SessionStore:
        return self._store

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # Queries ----------------------------------------------------------------

    async def initialize_auth(self) -> AuthStateResult:
        try:
            sync = await self._reconcile()
            result = await self._current_state()
        except Exception as e:
            log.exception("initialize_auth_failed")
            result = AuthStateResult.unauthenticated(error=str(e))
            sync = SyncResult(status=SyncStatus.failed, error=str(e))

        if result.is_authenticated:
            self._publish(SessionEvent.established)
        log.info("auth_initialized", auth_state=result.auth_state, sync=sync.status)
        return result.model_copy(update={"initialized": True, "sync": sync})

    async def get_auth_state(self) -> AuthStateResult:
        try:
            return await self._current_state()
        except Exception as e:
            log.exception("get_auth_state_failed")
            return AuthStateResult.unauthenticated(error=str(e))

    async def validate_session(self) -> SessionValidation:
        try:
            state = await self._current_state()
            if not state.is_authenticated:
                reason = state.reason.value if state.reason is not None else "notAuthenticated"
                return SessionValidation(is_valid=False, reason=reason, auth_state=state)

            identity = self._identity.current_identity()
            token = await self._store.token()
            if identity is None or identity.id != token:
                # The cache says signed in but the provider disagrees: treat as expiry.
                log.warning("session_desync", has_identity=identity is not None)
                await self._clear()
                return SessionValidation(is_valid=False, reason=LogoutReason.session_invalid.value)

            return SessionValidation(is_valid=True, auth_state=state)
        except Exception:
            log.exception("validate_session_failed")
            return SessionValidation(is_valid=False, reason="validationFailed")

    async def is_authenticated(self) -> bool:
        try:
            return bool(await self._store.token())
        except Exception:
            log.exception("is_authenticated_failed")
            return False

    async def get_current_user(self) -> UserRecord | None:
        try:
            return (await self._store.read()).user_record
        except Exception:
            log.exception("get_current_user_failed")
            return None

    async def get_debug_info(self) -> dict[str, Any]:
        try:
            info = await self._store.debug_snapshot()
        except Exception as e:
            return {"error": str(e)}
        info["identity"] = "present" if self._identity.current_identity() is not None else None
        return info

    async def consume_logout_reason(self) -> LogoutReason | None:
        try:
            return await self._store.pop_logout_reason()
        except Exception:
            log.exception("consume_logout_reason_failed")
            return None

    # Sign-in ----------------------------------------------------------------

    async def complete_authentication(self, phone_number: str, identity: Identity) -> CompletionResult:
        """
        Existence is checked by phone number: on a first sign-in the provider mints a
        fresh identity id that no record carries yet.
        """

        try:
            record = await self._documents.find_user_by_phone(phone_number)
            is_new_user = record is None
            if record is None:
                record = await self._documents.create_user(identity.id, phone_number)

            login_at = iso_from_ms(self._clock())
            record = record.model_copy(update={"last_login_at": login_at})
            await self._store.write(record, identity)
            await self._store.discard_pending_verification()
            await self._store.pop_logout_reason()
        except Exception as e:
            log.exception("complete_authentication_failed")
            return CompletionResult(success=False, error=str(e))

        await self._touch_last_login(record.user_id, login_at)
        evaluation = evaluate_record(record)
        self._publish(SessionEvent.established)
        log.info("authentication_completed", is_new_user=is_new_user, auth_state=evaluation.state)
        return CompletionResult(
            success=True,
            is_new_user=is_new_user,
            user=record,
            redirect_to=evaluation.redirect_to,
        )

    # Mutations --------------------------------------------------------------

    async def update_user_role(self, role: str) -> bool:
        value = usable_role(role)
        if value is None:
            log.warning("update_user_role_rejected", role=role)
            return False
        return await self._patch("user_role_updated", lambda r: r.model_copy(update={"role": value}))

    async def update_community_selection(self, community_id: str) -> bool:
        if not community_id:
            log.warning("update_community_selection_rejected")
            return False

        def _mutate(record: UserRecord) -> UserRecord:
            profile = (record.profile or empty_profile()).model_copy(update={"community_id": community_id})
            return record.model_copy(update={"profile": profile})

        return await self._patch("community_selection_updated", _mutate)

    async def update_profile_completion(self, patch: Mapping[str, Any]) -> bool:
        changes = {_PROFILE_ALIASES.get(k, k): v for k, v in patch.items()}

        def _mutate(record: UserRecord) -> UserRecord:
            current = (record.profile or empty_profile()).model_dump(by_alias=True)
            merged = Profile.model_validate({**current, **changes, "isProfileComplete": True})
            if not (merged.community_id and merged.apartment_number):
                # Only flag complete when the fields it promises exist.
                merged = merged.model_copy(update={"is_profile_complete": False})
            return record.model_copy(update={"profile": merged})

        return await self._patch("profile_completion_updated", _mutate)

    async def refresh_user_data(self) -> UserRecord | None:
        try:
            token = await self._store.token()
            if not token:
                return None
            fresh = await self._documents.get_user_by_id(token)
            if fresh is None:
                log.warning("refresh_user_not_found")
                return None
            updated = await self._store.patch(lambda _: fresh)
            if updated is not None:
                await self._store.mark_refreshed(self._clock())
            return updated
        except Exception:
            log.exception("refresh_user_data_failed")
            return None

    async def auto_refresh_user_data(self) -> bool:
        """Refresh at most once per configured interval; failures are logged only."""

        try:
            if not await self.is_authenticated():
                return False
            last = await self._store.last_refreshed_at()
            interval_ms = self._settings.user_data_refresh_interval_seconds * 1000
            if last is not None and self._clock() - last <= interval_ms:
                return False
        except Exception:
            log.exception("auto_refresh_check_failed")
            return False
        refreshed = await self.refresh_user_data()
        if refreshed is not None:
            log.info("user_data_auto_refreshed")
        return refreshed is not None

    async def sign_out(self, reason: LogoutReason | None = None) -> bool:
        """
        Remote sign-out is attempted first; the local clear runs whether or not it
        succeeded. Returns False if either step failed.
        """

        remote_ok = True
        try:
            await self._identity.sign_out()
        except Exception:
            remote_ok = False
            log.warning("remote_sign_out_failed", exc_info=True)

        try:
            await self._clear()
            if reason is not None:
                await self._store.set_logout_reason(reason)
        except Exception:
            log.exception("local_sign_out_failed")
            return False

        log.info("signed_out", reason=reason, remote_ok=remote_ok)
        return remote_ok

    # Internals --------------------------------------------------------------

    async def _reconcile(self) -> SyncResult:
        identity = self._identity.current_identity()
        token = await self._store.token()

        if identity is not None and token != identity.id:
            record = await self._documents.get_user_by_id(identity.id)
            if record is not None:
                login_at = iso_from_ms(self._clock())
                await self._store.write(record.model_copy(update={"last_login_at": login_at}), identity)
                await self._touch_last_login(record.user_id, login_at)
                log.info("session_reconciled", had_token=token is not None)
                return SyncResult(status=SyncStatus.synced)
            if token is not None:
                await self._clear()
                return SyncResult(status=SyncStatus.cleared)

        if identity is None and token is not None:
            log.info("identity_gone_clearing_session")
            await self._clear()
            return SyncResult(status=SyncStatus.cleared)

        return SyncResult(status=SyncStatus.no_action)

    async def _current_state(self) -> AuthStateResult:
        # Absolute expiry short-circuits the evaluator.
        snapshot = await self._store.read(logged_in_after=self._clock() - self._settings.session_ttl_ms)
        if snapshot.expired:
            self._publish(SessionEvent.cleared)
            return AuthStateResult.unauthenticated(reason=LogoutReason.session_expired)
        if not snapshot.has_session or snapshot.user_record is None:
            return AuthStateResult.unauthenticated()

        evaluation = evaluate(snapshot.user_record, snapshot.role, snapshot.selected_community)
        return AuthStateResult(
            is_authenticated=True,
            auth_state=evaluation.state,
            user_data=snapshot.user_record,
            user_role=usable_role(snapshot.role),
            redirect_to=evaluation.redirect_to,
        )

    async def _patch(self, event: str, mutator: RecordMutator) -> bool:
        try:
            updated = await self._store.patch(mutator)
        except Exception:
            log.exception("session_patch_failed", op=event)
            return False
        if updated is None:
            log.warning("session_patch_without_session", op=event)
            return False
        log.info(event, auth_state=evaluate_record(updated).state)
        return True

    async def _clear(self) -> None:
        # Monitors stop their timers even if the local clear fails half way.
        try:
            await self._store.clear()
        finally:
            self._publish(SessionEvent.cleared)

    async def _touch_last_login(self, user_id: str, at: str) -> None:
        try:
            await self._documents.update_last_login(user_id, at)
        except Exception:
            log.warning("update_last_login_failed", exc_info=True)

    def _publish(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception("session_listener_failed", event=event)


# --- Module Notes -----------------------------------------------------------
# State is never pushed to screens: after any mutation the caller re-reads
# `get_auth_state()` to learn the new redirect.
