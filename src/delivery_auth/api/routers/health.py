"""
delivery_auth.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) checking the session key-value store.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from delivery_auth.api.deps import kv_store
from delivery_auth.db.repositories.key_value import KeyValueStore

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(kv: KeyValueStore = Depends(kv_store)) -> dict[str, str]:
    # The session cache is the only local dependency; remote clients are checked lazily.
    await kv.ping()
    return {"status": "ready"}
