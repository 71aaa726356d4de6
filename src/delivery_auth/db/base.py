"""
delivery_auth.db.base

SQLAlchemy declarative base.

Responsibilities:
- Provide a shared DeclarativeBase for the key-value table.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# --- Module Notes -----------------------------------------------------------
# All ORM models should inherit from `Base` so Alembic and metadata discovery work.
