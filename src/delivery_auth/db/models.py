"""
delivery_auth.db.models

Persistence schema for the local key-value store.

Responsibilities:
- Define the single string-to-string table that outlives the process.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from delivery_auth.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    # Values are opaque strings; callers own (de)serialization.
    value: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


# --- Module Notes -----------------------------------------------------------
# Values carry no schema here; the session key names live in
# `delivery_auth.session.store.StorageKey`.
