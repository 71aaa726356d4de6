"""
tests.test_activity_monitor

Activity monitor tests.

Responsibilities:
- Inactivity timeout fires exactly once and signs out with the inactivity reason.
- Activity resets the timer; background pauses it.
- Resume re-validates, enforces the timeout across background time, and refreshes
  the profile after long absences.
- Session events arm and disarm the monitor.
"""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeClock, FakeDocumentStore, FakeIdentityProvider, make_record

from delivery_auth.auth.models import Identity
from delivery_auth.monitor.activity import ActivityMonitor, AppState, MonitorState
from delivery_auth.monitor.validation import PeriodicSessionValidator
from delivery_auth.services.auth_service import AuthService
from delivery_auth.session.models import LogoutReason
from delivery_auth.session.store import SessionStore, StorageKey
from delivery_auth.settings import Settings


async def _signed_in(auth: AuthService, identity: FakeIdentityProvider) -> None:
    identity.identity = Identity(id="u1")
    await auth.store.write(make_record(), identity.identity)


def _monitor(auth: AuthService, settings: Settings, clock: FakeClock, **overrides) -> tuple[ActivityMonitor, list[str]]:
    visited: list[str] = []

    async def navigate(path: str) -> None:
        visited.append(path)

    monitor = ActivityMonitor(
        auth=auth,
        settings=settings.model_copy(update=overrides),
        navigate=navigate,
        clock=clock,
    )
    return monitor, visited


@pytest.mark.asyncio
async def test_inactivity_timeout_signs_out_exactly_once(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, visited = _monitor(auth, settings, clock, inactivity_timeout_seconds=0.1)
    await monitor.start()
    assert monitor.state is MonitorState.armed

    try:
        await asyncio.sleep(0.15)
        assert identity.sign_out_calls == 1
        await asyncio.sleep(0.5)
        assert identity.sign_out_calls == 1
    finally:
        await monitor.stop()

    assert visited == ["/login?reason=inactivity"]
    assert monitor.last_forced_redirect == "/login?reason=inactivity"
    assert await auth.consume_logout_reason() is LogoutReason.inactivity
    assert await auth.store.token() is None


@pytest.mark.asyncio
async def test_activity_resets_the_timer(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=0.3)
    await monitor.start()

    try:
        await asyncio.sleep(0.2)
        monitor.record_activity()
        await asyncio.sleep(0.2)
        assert identity.sign_out_calls == 0
        await asyncio.sleep(0.3)
        assert identity.sign_out_calls == 1
    finally:
        await monitor.stop()


@pytest.mark.asyncio
async def test_unauthenticated_monitor_stays_idle(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=0.05)
    await monitor.start()

    try:
        monitor.record_activity()
        await asyncio.sleep(0.1)
        assert monitor.state is MonitorState.idle
        assert identity.sign_out_calls == 0
    finally:
        await monitor.stop()


@pytest.mark.asyncio
async def test_background_pauses_the_timer(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=0.1)
    await monitor.start()

    try:
        await monitor.on_app_state_change(AppState.background)
        await asyncio.sleep(0.2)
        assert monitor.state is MonitorState.backgrounded
        assert identity.sign_out_calls == 0
        assert await auth.store.background_entered_at() == clock.now
    finally:
        await monitor.stop()


@pytest.mark.asyncio
async def test_resume_after_timeout_elapsed_in_background_signs_out(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, visited = _monitor(auth, settings, clock, inactivity_timeout_seconds=60)
    await monitor.start()

    try:
        await monitor.on_app_state_change("background")
        clock.advance(61_000)
        await monitor.on_app_state_change("active")
    finally:
        await monitor.stop()

    assert identity.sign_out_calls == 1
    assert visited == ["/login?reason=inactivity"]


@pytest.mark.asyncio
async def test_short_background_rearms_without_refresh(
    auth: AuthService,
    identity: FakeIdentityProvider,
    documents: FakeDocumentStore,
    settings: Settings,
    clock: FakeClock,
) -> None:
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=60)
    await monitor.start()

    try:
        await monitor.on_app_state_change("background")
        clock.advance(10_000)
        await monitor.on_app_state_change("active")
        await asyncio.sleep(0.01)

        assert monitor.state is MonitorState.armed
        assert monitor.last_activity_at == clock.now
        assert identity.sign_out_calls == 0
        assert documents.get_calls == 0
    finally:
        await monitor.stop()


@pytest.mark.asyncio
async def test_long_background_under_timeout_refreshes_profile(
    auth: AuthService,
    identity: FakeIdentityProvider,
    documents: FakeDocumentStore,
    settings: Settings,
    clock: FakeClock,
) -> None:
    documents.users["u1"] = make_record(role="admin")
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=30 * 60)
    await monitor.start()

    try:
        await monitor.on_app_state_change("background")
        clock.advance(6 * 60 * 1000)
        await monitor.on_app_state_change("active")
        await asyncio.sleep(0.05)

        assert monitor.state is MonitorState.armed
        assert documents.get_calls == 1
        assert (await auth.get_current_user()).role == "admin"
    finally:
        await monitor.stop()


@pytest.mark.asyncio
async def test_resume_with_invalid_session_signs_out_as_expired(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, visited = _monitor(auth, settings, clock, inactivity_timeout_seconds=60)
    await monitor.start()

    try:
        await monitor.on_app_state_change("background")
        identity.identity = None
        await monitor.on_app_state_change("active")
    finally:
        await monitor.stop()

    assert identity.sign_out_calls == 1
    assert visited == ["/login?reason=sessionExpired"]


@pytest.mark.asyncio
async def test_sign_out_elsewhere_disarms_the_timer(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, visited = _monitor(auth, settings, clock, inactivity_timeout_seconds=0.1)
    await monitor.start()

    try:
        await auth.sign_out()
        assert monitor.state is MonitorState.logged_out
        await asyncio.sleep(0.2)
    finally:
        await monitor.stop()

    assert identity.sign_out_calls == 1
    assert visited == []


@pytest.mark.asyncio
async def test_new_session_rearms_after_logout(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=60)
    await monitor.start()

    try:
        await auth.sign_out()
        assert monitor.state is MonitorState.logged_out

        await auth.complete_authentication("+919876543210", Identity(id="u2"))
        assert monitor.state is MonitorState.armed
    finally:
        await monitor.stop()


@pytest.mark.asyncio
async def test_poll_notices_session_removed_behind_its_back(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock, kv
) -> None:
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=60)
    await monitor.start()

    try:
        await kv.multi_remove([StorageKey.token])
        await monitor.check_auth_state()
        assert monitor.state is MonitorState.logged_out
    finally:
        await monitor.stop()


@pytest.mark.asyncio
async def test_resume_through_inactive_rearms(
    auth: AuthService, identity: FakeIdentityProvider, settings: Settings, clock: FakeClock
) -> None:
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=60)
    await monitor.start()

    try:
        await monitor.on_app_state_change(AppState.background)
        clock.advance(10_000)
        await monitor.on_app_state_change(AppState.inactive)
        assert monitor.state is MonitorState.backgrounded

        await monitor.on_app_state_change(AppState.active)
        assert monitor.state is MonitorState.armed
        assert monitor.last_activity_at == clock.now
        assert identity.sign_out_calls == 0
    finally:
        await monitor.stop()


class _BrokenRemoves:
    def __init__(self, kv) -> None:
        self._kv = kv

    async def multi_remove(self, keys):
        raise OSError("disk I/O error")

    def __getattr__(self, name):
        return getattr(self._kv, name)


@pytest.mark.asyncio
async def test_failed_local_clear_still_stops_both_timers(
    kv,
    identity: FakeIdentityProvider,
    documents: FakeDocumentStore,
    settings: Settings,
    clock: FakeClock,
) -> None:
    store = SessionStore(_BrokenRemoves(kv), clock=clock)
    auth = AuthService(store=store, identity=identity, documents=documents, settings=settings, clock=clock)
    await _signed_in(auth, identity)
    monitor, _ = _monitor(auth, settings, clock, inactivity_timeout_seconds=60)
    validator = PeriodicSessionValidator(auth=auth, settings=settings)
    await monitor.start()
    await validator.start()
    assert monitor.state is MonitorState.armed
    assert validator.running is True

    try:
        assert await auth.sign_out(LogoutReason.inactivity) is False
        assert monitor.state is MonitorState.logged_out
        assert validator.running is False
    finally:
        validator.stop()
        await monitor.stop()
