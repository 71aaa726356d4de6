"""
delivery_auth.api.routers.session

Session endpoints consumed by screens.

Responsibilities:
- Expose the `AuthStateResult` contract (initialize, read, validate).
- Apply role / community / profile updates and return the re-derived state.
- Sign out, and relay user activity and app lifecycle changes to the monitors.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.status import HTTP_404_NOT_FOUND

from delivery_auth.api.deps import (
    activity_monitor,
    auth_service,
    session_validator,
    settings_dep,
)
from delivery_auth.monitor.activity import ActivityMonitor, AppState
from delivery_auth.monitor.validation import PeriodicSessionValidator
from delivery_auth.services.auth_service import AuthService
from delivery_auth.session.models import AuthStateResult, LogoutReason, SessionValidation
from delivery_auth.settings import Settings

router = APIRouter(prefix="/v1/session", tags=["session"])


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoleRequest(_Body):
    role: str


class CommunityRequest(_Body):
    community_id: str


class SignOutRequest(_Body):
    reason: LogoutReason | None = None


class AppStateRequest(_Body):
    state: AppState


class MutationResponse(_Body):
    success: bool
    state: AuthStateResult


class MonitorResponse(_Body):
    monitor_state: str
    app_state: AppState
    forced_redirect: str | None = None


class LogoutReasonResponse(_Body):
    reason: LogoutReason | None = None


@router.post("/initialize")
async def initialize(auth: AuthService = Depends(auth_service)) -> AuthStateResult:
    return await auth.initialize_auth()


@router.get("")
async def get_state(auth: AuthService = Depends(auth_service)) -> AuthStateResult:
    return await auth.get_auth_state()


@router.post("/validate")
async def validate(auth: AuthService = Depends(auth_service)) -> SessionValidation:
    return await auth.validate_session()


@router.post("/role")
async def update_role(body: RoleRequest, auth: AuthService = Depends(auth_service)) -> MutationResponse:
    ok = await auth.update_user_role(body.role)
    return MutationResponse(success=ok, state=await auth.get_auth_state())


@router.post("/community")
async def update_community(
    body: CommunityRequest, auth: AuthService = Depends(auth_service)
) -> MutationResponse:
    ok = await auth.update_community_selection(body.community_id)
    return MutationResponse(success=ok, state=await auth.get_auth_state())


@router.post("/profile")
async def update_profile(
    patch: dict[str, Any], auth: AuthService = Depends(auth_service)
) -> MutationResponse:
    ok = await auth.update_profile_completion(patch)
    return MutationResponse(success=ok, state=await auth.get_auth_state())


@router.post("/refresh")
async def refresh(auth: AuthService = Depends(auth_service)) -> MutationResponse:
    refreshed = await auth.refresh_user_data()
    return MutationResponse(success=refreshed is not None, state=await auth.get_auth_state())


@router.post("/sign-out")
async def sign_out(
    body: SignOutRequest | None = None,
    auth: AuthService = Depends(auth_service),
) -> MutationResponse:
    ok = await auth.sign_out(body.reason if body is not None else None)
    return MutationResponse(success=ok, state=await auth.get_auth_state())


@router.post("/activity")
async def record_activity(monitor: ActivityMonitor = Depends(activity_monitor)) -> MonitorResponse:
    monitor.record_activity()
    return _monitor_response(monitor)


@router.post("/app-state")
async def app_state(
    body: AppStateRequest,
    monitor: ActivityMonitor = Depends(activity_monitor),
    validator: PeriodicSessionValidator = Depends(session_validator),
) -> MonitorResponse:
    if body.state is AppState.background:
        validator.pause()
    await monitor.on_app_state_change(body.state)
    if body.state is AppState.active:
        await validator.resume()
    return _monitor_response(monitor)


@router.get("/logout-reason")
async def logout_reason(auth: AuthService = Depends(auth_service)) -> LogoutReasonResponse:
    # Read once: the login screen shows the message a single time.
    return LogoutReasonResponse(reason=await auth.consume_logout_reason())


@router.get("/debug")
async def debug_info(
    auth: AuthService = Depends(auth_service),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not Found")
    return await auth.get_debug_info()


def _monitor_response(monitor: ActivityMonitor) -> MonitorResponse:
    return MonitorResponse(
        monitor_state=monitor.state.value,
        app_state=monitor.app_state,
        forced_redirect=monitor.last_forced_redirect,
    )


# --- Module Notes -----------------------------------------------------------
# Mutations answer with the freshly evaluated state so a screen can navigate to
# `state.redirectTo` without a second round trip.
