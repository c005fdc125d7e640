# src/resource_api/models/record.py
"""SQLAlchemy models for stored resource records."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from resource_api.db.session import Base
from resource_api.db.time import utcnow


def new_record_key() -> str:
    """Return a fresh server-generated record key."""
    return uuid.uuid4().hex


class Record(Base):
    """A single record of a collection.

    Deleted records stay behind as tombstones (``deleted`` set, fields and
    credential wiped) so that their key is never handed out again.
    """

    __tablename__ = "records"

    key: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_record_key)
    collection: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    fields: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    credential_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class RecordUniqueValue(Base):
    """Claim on a unique field value held by one live record."""

    __tablename__ = "record_unique_values"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    field: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, primary_key=True)
    record_key: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("records.key", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
