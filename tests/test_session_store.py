"""
tests.test_session_store

Session store tests against a real SQLite key-value store.

Responsibilities:
- Round-trip and denormalized-key consistency.
- Idempotent clear and clear-epoch bookkeeping.
- Self-healing on corrupted or orphaned cache contents.
- `patch` semantics and the ancillary keys.
"""

from __future__ import annotations

import pytest
from conftest import T0, make_record

from delivery_auth.auth.models import Identity
from delivery_auth.session.models import LogoutReason
from delivery_auth.session.store import ANCILLARY_KEYS, SESSION_KEYS, SessionStore, StorageKey


async def _remaining(kv, keys=(*SESSION_KEYS, *ANCILLARY_KEYS)) -> dict[str, str]:
    values = await kv.multi_get(keys)
    return {k: v for k, v in values.items() if v is not None}


@pytest.mark.asyncio
async def test_write_then_read_round_trips(store: SessionStore) -> None:
    record = make_record(role="admin", createdAt="2024-01-01T00:00:00Z")
    await store.write(record, Identity(id="u1"))

    snapshot = await store.read()
    assert snapshot.token == "u1"
    assert snapshot.user_record == record
    assert snapshot.role == record.role
    assert snapshot.selected_community == record.profile.community_id
    assert snapshot.login_timestamp == T0
    # Unknown remote fields survive the cache.
    assert snapshot.user_record.model_dump(by_alias=True)["createdAt"] == "2024-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_absent_role_and_community_read_back_as_none(store: SessionStore, kv) -> None:
    await store.write(make_record(role=None, community_id=None), Identity(id="u1"))

    assert await kv.get(StorageKey.role) == ""
    snapshot = await store.read()
    assert snapshot.has_session
    assert snapshot.role is None
    assert snapshot.selected_community is None
    assert await kv.get(StorageKey.auth_state) == "needsCommunitySelection"


@pytest.mark.asyncio
async def test_clear_is_idempotent(store: SessionStore, kv) -> None:
    await store.write(make_record(), Identity(id="u1"))
    await store.set_pending_verification("v-1")

    await store.clear()
    first = await _remaining(kv)
    await store.clear()

    assert first == {}
    assert await _remaining(kv) == {}
    assert store.clear_epoch == 2
    assert not (await store.read()).has_session


@pytest.mark.asyncio
async def test_unparseable_record_clears_everything(store: SessionStore, kv) -> None:
    await store.write(make_record(), Identity(id="u1"))
    await kv.set(StorageKey.user_data, "{not json")

    snapshot = await store.read()

    assert not snapshot.has_session
    assert snapshot.user_record is None
    assert await _remaining(kv) == {}


@pytest.mark.asyncio
async def test_token_without_record_is_corruption(store: SessionStore, kv) -> None:
    await kv.multi_set({StorageKey.token: "u1", StorageKey.login_timestamp: str(T0)})

    assert not (await store.read()).has_session
    assert await _remaining(kv) == {}


@pytest.mark.asyncio
async def test_missing_timestamp_is_corruption(store: SessionStore, kv) -> None:
    await store.write(make_record(), Identity(id="u1"))
    await kv.set(StorageKey.login_timestamp, "yesterday")

    assert not (await store.read()).has_session
    assert await kv.get(StorageKey.token) is None


@pytest.mark.asyncio
async def test_orphaned_keys_without_token_are_removed(store: SessionStore, kv) -> None:
    await kv.multi_set({StorageKey.role: "admin", StorageKey.auth_state: "authenticated"})

    assert not (await store.read()).has_session
    assert await _remaining(kv) == {}


@pytest.mark.asyncio
async def test_patch_rewrites_record_and_changed_keys(store: SessionStore, kv) -> None:
    await store.write(make_record(role=None), Identity(id="u1"))

    updated = await store.patch(lambda r: r.model_copy(update={"role": "delivery"}))

    assert updated is not None and updated.role == "delivery"
    assert await kv.get(StorageKey.role) == "delivery"
    assert await kv.get(StorageKey.selected_community) == "c1"
    assert await kv.get(StorageKey.auth_state) == "authenticated"
    snapshot = await store.read()
    assert snapshot.user_record.role == "delivery"
    assert snapshot.login_timestamp == T0


@pytest.mark.asyncio
async def test_patch_without_session_returns_none(store: SessionStore, kv) -> None:
    assert await store.patch(lambda r: r) is None
    assert await _remaining(kv) == {}


@pytest.mark.asyncio
async def test_logout_reason_survives_clear_and_is_read_once(store: SessionStore) -> None:
    await store.write(make_record(), Identity(id="u1"))
    await store.set_logout_reason(LogoutReason.inactivity)
    await store.clear()

    assert await store.pop_logout_reason() is LogoutReason.inactivity
    assert await store.pop_logout_reason() is None


@pytest.mark.asyncio
async def test_ancillary_timestamps(store: SessionStore) -> None:
    assert await store.last_refreshed_at() is None
    await store.mark_refreshed(T0)
    await store.set_background_entered(T0 + 5)

    assert await store.last_refreshed_at() == T0
    assert await store.background_entered_at() == T0 + 5

    await store.clear()
    assert await store.background_entered_at() is None


@pytest.mark.asyncio
async def test_debug_snapshot_hides_identifiers(store: SessionStore) -> None:
    await store.write(make_record(), Identity(id="u1"))

    info = await store.debug_snapshot()

    assert info["userToken"] == "present"
    assert info["userData"] == "present"
    assert info["userRole"] == "customer"
    assert info["loginTimestamp"] == str(T0)
    assert info["identityToken"] is None


@pytest.mark.asyncio
async def test_identity_token_is_written_with_the_session_and_cleared_with_it(store: SessionStore) -> None:
    await store.write(make_record(), Identity(id="u1", id_token="header.claims.sig"))

    assert await store.identity_token() == "header.claims.sig"
    assert (await store.debug_snapshot())["identityToken"] == "present"

    await store.clear()
    assert await store.identity_token() is None


@pytest.mark.asyncio
async def test_read_expires_sessions_logged_in_before_the_cutoff(store: SessionStore, kv) -> None:
    await store.write(make_record(), Identity(id="u1"))

    kept = await store.read(logged_in_after=T0)
    assert kept.has_session and not kept.expired

    expired = await store.read(logged_in_after=T0 + 1)
    assert expired.expired is True
    assert not expired.has_session
    assert await _remaining(kv) == {}
    assert store.clear_epoch == 1
