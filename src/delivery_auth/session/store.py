"""
delivery_auth.session.store

Typed session cache over the persistent key-value store.

Responsibilities:
- Own the schema of the auth-related keys (token, cached record, role, community,
  login timestamp, diagnostic state label) and the ancillary keys cleared with them.
- Write and clear the session as single batches.
- Treat unreadable cache contents as "no session" and heal by clearing.
- Keep the denormalized role/community keys in step with the cached record through
  one `patch` primitive.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from delivery_auth.auth.models import Identity
from delivery_auth.clock import Clock, epoch_ms
from delivery_auth.db.repositories.key_value import KeyValueStore
from delivery_auth.observability.logging import get_logger
from delivery_auth.session.evaluator import evaluate, usable_role
from delivery_auth.session.models import LogoutReason, SessionSnapshot, UserRecord

log = get_logger(__name__)


class StorageKey(enum.StrEnum):
    # Key names are shared with older installs; changing them orphans existing sessions.
    token = "userToken"
    user_data = "userData"
    role = "userRole"
    selected_community = "selectedCommunity"
    login_timestamp = "loginTimestamp"
    auth_state = "authState"

    identity_token = "identityToken"
    pending_verification = "pendingVerificationId"
    last_refresh = "lastUserDataRefresh"
    background_entered = "lastBackgroundTime"

    logout_reason = "logoutReason"


SESSION_KEYS: tuple[StorageKey, ...] = (
    StorageKey.token,
    StorageKey.user_data,
    StorageKey.role,
    StorageKey.selected_community,
    StorageKey.login_timestamp,
    StorageKey.auth_state,
)
ANCILLARY_KEYS: tuple[StorageKey, ...] = (
    StorageKey.identity_token,
    StorageKey.pending_verification,
    StorageKey.last_refresh,
    StorageKey.background_entered,
)

_MASKED_KEYS: frozenset[StorageKey] = frozenset(
    {StorageKey.token, StorageKey.user_data, StorageKey.identity_token, StorageKey.pending_verification}
)

RecordMutator = Callable[[UserRecord], UserRecord]


class _CorruptSession(Exception):
    pass


class SessionStore:
    """
    All mutations go through one lock so that a read-modify-write (`patch`) can never
    interleave with a `write` or `clear` issued by another task.
    """

    def __init__(self, kv: KeyValueStore, *, clock: Clock = epoch_ms) -> None:
        self._kv = kv
        self._clock = clock
        self._lock = asyncio.Lock()
        self._clear_epoch = 0

    @property
    def clear_epoch(self) -> int:
        """Incremented on every clear; timers compare it against the value seen at arm time."""
        return self._clear_epoch

    async def write(self, record: UserRecord, identity: Identity) -> None:
        role = usable_role(record.role) or ""
        community = record.community_id or ""
        pairs = {
            StorageKey.token: identity.id,
            StorageKey.user_data: record.to_json(),
            StorageKey.role: role,
            StorageKey.selected_community: community,
            StorageKey.login_timestamp: str(self._clock()),
            StorageKey.auth_state: evaluate(record, role, community).state.value,
            StorageKey.identity_token: identity.id_token or "",
        }
        async with self._lock:
            await self._kv.multi_set(pairs)
        log.info("session_written", auth_state=pairs[StorageKey.auth_state])

    async def read(self, *, logged_in_after: int | None = None) -> SessionSnapshot:
        """
        With `logged_in_after`, a session whose login timestamp is older is cleared and
        reported as `expired`. The check and the clear happen under the mutation lock.
        """

        async with self._lock:
            snapshot, dirty = await self._load()
            if dirty:
                await self._clear_locked()
                return snapshot
            if (
                logged_in_after is not None
                and snapshot.has_session
                and (snapshot.login_timestamp or 0) < logged_in_after
            ):
                log.info("session_expired", overdue_ms=logged_in_after - (snapshot.login_timestamp or 0))
                await self._clear_locked()
                return SessionSnapshot(expired=True)
            return snapshot

    async def clear(self) -> None:
        async with self._lock:
            await self._clear_locked()

    async def patch(self, mutator: RecordMutator) -> UserRecord | None:
        """
        Apply `mutator` to the cached record and rewrite it together with whichever
        denormalized keys changed. Returns the new record, or None without a session.
        """

        async with self._lock:
            snapshot, dirty = await self._load()
            if dirty:
                await self._clear_locked()
                return None
            if snapshot.user_record is None:
                return None

            updated = mutator(snapshot.user_record.model_copy(deep=True))
            role = usable_role(updated.role) or ""
            community = updated.community_id or ""
            pairs: dict[str, str] = {
                StorageKey.user_data: updated.to_json(),
                StorageKey.auth_state: evaluate(updated, role, community).state.value,
            }
            if role != (snapshot.role or ""):
                pairs[StorageKey.role] = role
            if community != (snapshot.selected_community or ""):
                pairs[StorageKey.selected_community] = community
            await self._kv.multi_set(pairs)
            return updated

    async def token(self) -> str | None:
        return await self._kv.get(StorageKey.token) or None

    # Ancillary keys ---------------------------------------------------------

    async def identity_token(self) -> str | None:
        """Raw ID token of the identity that established the session."""
        return await self._kv.get(StorageKey.identity_token) or None

    async def set_pending_verification(self, verification_id: str) -> None:
        await self._kv.set(StorageKey.pending_verification, verification_id)

    async def pending_verification(self) -> str | None:
        return await self._kv.get(StorageKey.pending_verification) or None

    async def discard_pending_verification(self) -> None:
        await self._kv.multi_remove([StorageKey.pending_verification])

    async def mark_refreshed(self, at_ms: int) -> None:
        await self._kv.set(StorageKey.last_refresh, str(at_ms))

    async def last_refreshed_at(self) -> int | None:
        return _parse_int(await self._kv.get(StorageKey.last_refresh))

    async def set_background_entered(self, at_ms: int) -> None:
        await self._kv.set(StorageKey.background_entered, str(at_ms))

    async def background_entered_at(self) -> int | None:
        return _parse_int(await self._kv.get(StorageKey.background_entered))

    async def set_logout_reason(self, reason: LogoutReason) -> None:
        await self._kv.set(StorageKey.logout_reason, reason.value)

    async def pop_logout_reason(self) -> LogoutReason | None:
        raw = await self._kv.get(StorageKey.logout_reason)
        if raw is None:
            return None
        await self._kv.multi_remove([StorageKey.logout_reason])
        try:
            return LogoutReason(raw)
        except ValueError:
            return None

    async def debug_snapshot(self) -> dict[str, Any]:
        values = await self._kv.multi_get([*SESSION_KEYS, *ANCILLARY_KEYS, StorageKey.logout_reason])
        out: dict[str, Any] = {}
        for key, value in values.items():
            if key in _MASKED_KEYS:
                out[key] = "present" if value else None
            else:
                out[key] = value
        return out

    # Internals --------------------------------------------------------------

    async def _load(self) -> tuple[SessionSnapshot, bool]:
        """Return the parsed snapshot and whether leftover keys need clearing."""

        values = await self._kv.multi_get(SESSION_KEYS)
        token = values.get(StorageKey.token)
        if not token:
            orphaned = any(values.get(k) is not None for k in SESSION_KEYS)
            if orphaned:
                log.warning("session_cache_orphaned_keys")
            return SessionSnapshot(), orphaned

        try:
            snapshot = _parse(token, values)
        except _CorruptSession as e:
            log.warning("session_cache_corrupted", reason=str(e))
            return SessionSnapshot(), True
        return snapshot, False

    async def _clear_locked(self) -> None:
        await self._kv.multi_remove([*SESSION_KEYS, *ANCILLARY_KEYS])
        self._clear_epoch += 1
        log.info("session_cleared", epoch=self._clear_epoch)


def _parse(token: str, values: dict[str, str | None]) -> SessionSnapshot:
    raw_record = values.get(StorageKey.user_data)
    if not raw_record:
        raise _CorruptSession("token without cached record")
    try:
        record = UserRecord.model_validate_json(raw_record)
    except ValidationError as e:
        raise _CorruptSession(f"unreadable cached record: {e.error_count()} error(s)") from e

    login_timestamp = _parse_int(values.get(StorageKey.login_timestamp))
    if login_timestamp is None:
        raise _CorruptSession("missing or unreadable login timestamp")

    return SessionSnapshot(
        token=token,
        user_record=record,
        role=values.get(StorageKey.role) or None,
        selected_community=values.get(StorageKey.selected_community) or None,
        login_timestamp=login_timestamp,
    )


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# --- Module Notes -----------------------------------------------------------
# Absent role/community are stored as "" rather than removed so `write` stays a
# single multi_set; `_parse` maps "" back to None.
