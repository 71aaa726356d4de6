"""
delivery_auth.monitor.validation

Periodic session validator.

Responsibilities:
- While a session is established, call `AuthService.validate_session()` on a fixed interval.
- On an invalid result, sign out with reason `sessionInvalid` and navigate to login.
- Stop as soon as the session is cleared, whoever cleared it.
"""

from __future__ import annotations

from collections.abc import Callable

from delivery_auth.monitor.activity import Navigator, navigate_to
from delivery_auth.monitor.timers import Ticker
from delivery_auth.observability.logging import get_logger
from delivery_auth.services.auth_service import AuthService
from delivery_auth.session.models import LogoutReason, SessionEvent, SessionValidation, login_redirect
from delivery_auth.settings import Settings

log = get_logger(__name__)


class PeriodicSessionValidator:
    def __init__(
        self,
        *,
        auth: AuthService,
        settings: Settings,
        navigate: Navigator | None = None,
    ) -> None:
        self._auth = auth
        self._navigate = navigate
        self._ticker = Ticker("session_validation", settings.session_validation_interval_seconds, self.run_once)
        self._unsubscribe: Callable[[], None] | None = None
        self.last_forced_redirect: str | None = None

    @property
    def running(self) -> bool:
        return self._ticker.running

    async def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._auth.subscribe(self._on_session_event)
        if await self._auth.is_authenticated():
            self._ticker.start()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._ticker.stop()

    def pause(self) -> None:
        self._ticker.stop()

    async def resume(self) -> None:
        if await self._auth.is_authenticated():
            self._ticker.start()

    async def run_once(self) -> SessionValidation:
        validation = await self._auth.validate_session()
        if validation.is_valid:
            return validation

        log.info("periodic_validation_failed", reason=validation.reason)
        self._ticker.stop()
        await self._auth.sign_out(LogoutReason.session_invalid)
        redirect = login_redirect(LogoutReason.session_invalid)
        self.last_forced_redirect = redirect
        await navigate_to(self._navigate, redirect)
        return validation

    def _on_session_event(self, event: SessionEvent) -> None:
        if event is SessionEvent.established:
            self._ticker.start()
        elif event is SessionEvent.cleared:
            self._ticker.stop()


# --- Module Notes -----------------------------------------------------------
# The first check runs one full interval after the session is established; the
# resume path in ActivityMonitor covers the "came back after a long time" case.
