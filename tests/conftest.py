"""
tests.conftest

Shared fixtures for the session core tests.

Responsibilities:
- A real SQLite-backed key-value store per test (tmp_path).
- In-process identity provider and document store fakes.
- A manually advanced clock and factories for user records and services.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio

from delivery_auth.auth.models import Identity
from delivery_auth.clients.errors import DocumentStoreError, IdentityProviderError
from delivery_auth.db.init_db import init_db
from delivery_auth.db.repositories.key_value import SqlKeyValueStore
from delivery_auth.db.session import create_engine, create_sessionmaker
from delivery_auth.services.auth_service import AuthService
from delivery_auth.session.models import Profile, UserRecord
from delivery_auth.session.store import SessionStore
from delivery_auth.settings import Settings

T0 = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeIdentityProvider:
    def __init__(self, identity: Identity | None = None, *, fail_sign_out: bool = False) -> None:
        self.identity = identity
        self.fail_sign_out = fail_sign_out
        self.sign_out_calls = 0

    def current_identity(self) -> Identity | None:
        return self.identity

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        self.identity = None
        if self.fail_sign_out:
            raise IdentityProviderError("Network error. Please check your connection.", code="network-error")


class FakeDocumentStore:
    def __init__(self, *records: UserRecord) -> None:
        self.users: dict[str, UserRecord] = {r.user_id: r for r in records}
        self.fail = False
        self.get_calls = 0
        self.created: list[str] = []
        self.last_logins: dict[str, str] = {}

    def _check(self) -> None:
        if self.fail:
            raise DocumentStoreError("Document store unreachable", code="network-error")

    async def get_user_by_id(self, user_id: str) -> UserRecord | None:
        self._check()
        self.get_calls += 1
        return self.users.get(user_id)

    async def find_user_by_phone(self, phone_number: str) -> UserRecord | None:
        self._check()
        for record in self.users.values():
            if record.phone_number == phone_number:
                return record
        return None

    async def create_user(self, user_id: str, phone_number: str) -> UserRecord:
        self._check()
        record = UserRecord(
            user_id=user_id,
            phone_number=phone_number,
            profile=Profile(name="", email="", community_id="", apartment_number="", is_profile_complete=False),
        )
        self.users[user_id] = record
        self.created.append(user_id)
        return record

    async def update_last_login(self, user_id: str, at: str) -> None:
        self._check()
        self.last_logins[user_id] = at


def make_record(
    user_id: str = "u1",
    *,
    phone_number: str = "+919876543210",
    role: str | None = "customer",
    community_id: str | None = "c1",
    apartment_number: str | None = "5",
    complete: bool = True,
    **extra: Any,
) -> UserRecord:
    return UserRecord(
        user_id=user_id,
        phone_number=phone_number,
        role=role,
        profile=Profile(
            name="Asha",
            community_id=community_id,
            apartment_number=apartment_number,
            is_profile_complete=complete,
        ),
        **extra,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'session.db'}",
        auth_poll_interval_seconds=60,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def kv(settings: Settings) -> AsyncIterator[SqlKeyValueStore]:
    engine = create_engine(settings)
    await init_db(engine)
    yield SqlKeyValueStore(create_sessionmaker(engine))
    await engine.dispose()


@pytest.fixture
def store(kv: SqlKeyValueStore, clock: FakeClock) -> SessionStore:
    return SessionStore(kv, clock=clock)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def documents() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def auth(
    store: SessionStore,
    identity: FakeIdentityProvider,
    documents: FakeDocumentStore,
    settings: Settings,
    clock: FakeClock,
) -> AuthService:
    return AuthService(store=store, identity=identity, documents=documents, settings=settings, clock=clock)
