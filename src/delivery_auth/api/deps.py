"""
delivery_auth.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and the services built at startup.
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from fastapi import Request

from delivery_auth.db.repositories.key_value import KeyValueStore
from delivery_auth.monitor.activity import ActivityMonitor
from delivery_auth.monitor.validation import PeriodicSessionValidator
from delivery_auth.services.auth_service import AuthService
from delivery_auth.services.sign_in_service import SignInService
from delivery_auth.settings import Settings, get_settings


def settings_dep(request: Request) -> Settings:
    # The factory's settings win over the env-derived cached instance.
    return getattr(request.app.state, "settings", None) or get_settings()


# Everything below is created on app startup in `delivery_auth.api.app.create_app`.


def kv_store(request: Request) -> KeyValueStore:
    return request.app.state.kv  # type: ignore[attr-defined]


def auth_service(request: Request) -> AuthService:
    return request.app.state.auth  # type: ignore[attr-defined]


def sign_in_service(request: Request) -> SignInService:
    return request.app.state.sign_in  # type: ignore[attr-defined]


def activity_monitor(request: Request) -> ActivityMonitor:
    return request.app.state.activity  # type: ignore[attr-defined]


def session_validator(request: Request) -> PeriodicSessionValidator:
    return request.app.state.validator  # type: ignore[attr-defined]
