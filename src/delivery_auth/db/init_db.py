"""
delivery_auth.db.init_db

DB initialization helpers.

Responsibilities:
- Create the key-value table on first start.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from delivery_auth.db import models  # noqa: F401  # register tables on Base.metadata
from delivery_auth.db.base import Base


async def init_db(engine: AsyncEngine) -> None:
    """
    Create tables if they don't exist. The local store is a single table, so
    create_all is used in every environment; Alembic covers later schema changes.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
