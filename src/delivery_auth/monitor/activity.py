"""
delivery_auth.monitor.activity

Inactivity monitor.

Responsibilities:
- Track the last user interaction and run one inactivity timer, reset on activity.
- Sign out with reason `inactivity` when the timer fires.
- Pause on background; on resume re-validate the session, enforce the timeout for the
  time spent in background, and kick off a profile refresh after long absences.
- Poll the auth state so the monitor only arms while a session exists.

States: IDLE -> ARMED <-> BACKGROUNDED -> LOGGED_OUT. LOGGED_OUT only returns to
IDLE (and on to ARMED) when AuthService publishes a newly established session.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from delivery_auth.clock import Clock, epoch_ms
from delivery_auth.monitor.timers import Ticker, TimerSlot
from delivery_auth.observability.logging import get_logger
from delivery_auth.services.auth_service import AuthService
from delivery_auth.session.models import LOGIN_PATH, LogoutReason, SessionEvent, login_redirect
from delivery_auth.settings import Settings

log = get_logger(__name__)

Navigator = Callable[[str], Awaitable[None] | None]


class AppState(enum.StrEnum):
    active = "active"
    background = "background"
    inactive = "inactive"


class MonitorState(enum.StrEnum):
    idle = "IDLE"
    armed = "ARMED"
    backgrounded = "BACKGROUNDED"
    logged_out = "LOGGED_OUT"


async def navigate_to(navigator: Navigator | None, path: str) -> None:
    if navigator is None:
        return
    outcome = navigator(path)
    if inspect.isawaitable(outcome):
        await outcome


class ActivityMonitor:
    def __init__(
        self,
        *,
        auth: AuthService,
        settings: Settings,
        navigate: Navigator | None = None,
        clock: Clock = epoch_ms,
    ) -> None:
        self._auth = auth
        self._store = auth.store
        self._navigate = navigate
        self._clock = clock

        self._timeout_s = settings.inactivity_timeout_seconds
        self._refresh_after_ms = settings.resume_refresh_threshold_seconds * 1000

        self._timer = TimerSlot("inactivity")
        self._poll = Ticker("auth_poll", settings.auth_poll_interval_seconds, self.check_auth_state)
        self._state = MonitorState.idle
        self._app_state = AppState.active
        self._last_activity_at = clock()
        self._armed_epoch: int | None = None
        self._in_background = False
        self._pending: set[asyncio.Task[Any]] = set()
        self._unsubscribe: Callable[[], None] | None = None

        self.last_forced_redirect: str | None = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def app_state(self) -> AppState:
        return self._app_state

    @property
    def last_activity_at(self) -> int:
        return self._last_activity_at

    async def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._auth.subscribe(self._on_session_event)
        await self.check_auth_state()
        self._poll.start()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._poll.stop()
        self._timer.close()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._in_background = False
        self._state = MonitorState.idle

    def record_activity(self) -> None:
        """Raw interaction signal (touch/gesture start) from the UI."""

        self._last_activity_at = self._clock()
        if self._state is MonitorState.armed:
            self._arm_timer()

    async def check_auth_state(self) -> None:
        try:
            result = await self._auth.get_auth_state()
        except Exception:
            log.exception("activity_auth_check_failed")
            return

        if result.is_authenticated:
            if self._state is MonitorState.idle:
                self._state = MonitorState.armed
                self.record_activity()
        elif self._state in (MonitorState.armed, MonitorState.backgrounded):
            self._disarm(MonitorState.logged_out)

    async def on_app_state_change(self, next_state: AppState | str) -> None:
        next_state = AppState(next_state)
        self._app_state = next_state

        # Resume is keyed to the background entry, not the previous state: platforms
        # may report background -> inactive -> active.
        if next_state is AppState.background and not self._in_background:
            self._in_background = True
            await self._handle_background()
        elif next_state is AppState.active and self._in_background:
            self._in_background = False
            await self._handle_resume()

    # Internals --------------------------------------------------------------

    def _arm_timer(self) -> None:
        self._armed_epoch = self._store.clear_epoch
        self._timer.arm(self._timeout_s, self._on_inactivity_timeout)

    def _disarm(self, state: MonitorState) -> None:
        self._timer.cancel()
        self._armed_epoch = None
        self._state = state

    async def _on_inactivity_timeout(self) -> None:
        # The session may have been cleared elsewhere since the timer was armed.
        if self._state is not MonitorState.armed or self._armed_epoch != self._store.clear_epoch:
            return
        log.info("inactivity_timeout", timeout_s=self._timeout_s)
        await self._force_logout(LogoutReason.inactivity)

    async def _handle_background(self) -> None:
        self._timer.cancel()
        self._poll.stop()
        if self._state is MonitorState.armed:
            self._state = MonitorState.backgrounded
        try:
            await self._store.set_background_entered(self._clock())
        except Exception:
            log.exception("record_background_entry_failed")

    async def _handle_resume(self) -> None:
        self._poll.start()
        if self._state is MonitorState.idle:
            await self.check_auth_state()
            return
        if self._state is MonitorState.logged_out:
            return

        try:
            if not await self._auth.is_authenticated():
                self._disarm(MonitorState.logged_out)
                return

            validation = await self._auth.validate_session()
            if not validation.is_valid:
                log.info("session_invalid_on_resume", reason=validation.reason)
                await self._force_logout(LogoutReason.session_expired)
                return

            now = self._clock()
            background_at = await self._store.background_entered_at()
            # After a restart the in-memory activity time is fresh; the persisted
            # background entry is then the older, truthful bound.
            idle_since = min(self._last_activity_at, background_at or self._last_activity_at)
            if now - idle_since > self._timeout_s * 1000:
                log.info("inactivity_while_backgrounded", idle_ms=now - idle_since)
                await self._force_logout(LogoutReason.inactivity)
                return

            if background_at is not None and now - background_at > self._refresh_after_ms:
                self._spawn(self._refresh_profile())

            self._state = MonitorState.armed
            self.record_activity()
        except Exception:
            log.exception("app_resume_failed")

    async def _force_logout(self, reason: LogoutReason) -> None:
        self._disarm(MonitorState.logged_out)
        redirect = login_redirect(reason)
        try:
            await self._auth.sign_out(reason)
        except Exception:
            log.exception("forced_sign_out_failed")
            redirect = LOGIN_PATH
        self.last_forced_redirect = redirect
        await navigate_to(self._navigate, redirect)

    async def _refresh_profile(self) -> None:
        try:
            await self._auth.refresh_user_data()
        except Exception:
            log.warning("resume_refresh_failed", exc_info=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _on_session_event(self, event: SessionEvent) -> None:
        if event is SessionEvent.cleared:
            if self._state in (MonitorState.armed, MonitorState.backgrounded):
                self._disarm(MonitorState.logged_out)
        elif event is SessionEvent.established:
            if self._state in (MonitorState.idle, MonitorState.logged_out):
                self._state = MonitorState.armed
                self.record_activity()


# --- Module Notes -----------------------------------------------------------
# The 24h absolute expiry is not enforced here; it is checked lazily by
# AuthService.get_auth_state(). This monitor only owns the rolling inactivity window.
