"""Data access helpers for working with records."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from resource_api.models.record import Record, RecordUniqueValue

__all__ = ["RecordRepository"]


class RecordRepository:
    """Thin wrapper around database access for records of one collection."""

    def __init__(self, session: AsyncSession, collection: str) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session
        self.collection = collection

    def _live(self) -> list[ColumnElement[bool]]:
        return [Record.collection == self.collection, Record.deleted.is_(False)]

    async def get(self, key: str) -> Record | None:
        """Return a live record by key."""
        result = await self.session.execute(select(Record).where(Record.key == key, *self._live()))
        return result.scalars().first()

    async def list_page(
        self,
        conditions: Sequence[ColumnElement[bool]],
        order_by: Sequence[Any],
        *,
        offset: int,
        limit: int,
    ) -> list[Record]:
        """Return live records matching `conditions` in the given order."""
        stmt = (
            select(Record)
            .where(*self._live(), *conditions)
            .order_by(*order_by)
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def count(self, conditions: Sequence[ColumnElement[bool]]) -> int:
        """Return the number of live records matching `conditions`."""
        stmt = select(func.count()).select_from(Record).where(*self._live(), *conditions)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    def add(self, record: Record) -> None:
        self.session.add(record)

    async def apply_update(
        self,
        key: str,
        values: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> bool:
        """Write `values` and bump the version in a single UPDATE.

        With `expected_version` the write only lands if the stored version
        still matches. Returns False when no row was updated.
        """
        stmt = update(Record).where(Record.key == key, *self._live())
        if expected_version is not None:
            stmt = stmt.where(Record.version == expected_version)
        stmt = stmt.values(version=Record.version + 1, **values).execution_options(
            synchronize_session=False
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def unique_owner(self, field: str, value: str) -> str | None:
        """Return the key of the record holding a unique value, if any."""
        stmt = select(RecordUniqueValue.record_key).where(
            RecordUniqueValue.collection == self.collection,
            RecordUniqueValue.field == field,
            RecordUniqueValue.value == value,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    def claim_unique(self, field: str, value: str, record_key: str) -> None:
        self.session.add(
            RecordUniqueValue(
                collection=self.collection,
                field=field,
                value=value,
                record_key=record_key,
            )
        )

    async def release_unique(self, record_key: str, field: str | None = None) -> None:
        """Drop the unique claims held by a record (optionally for one field)."""
        stmt = delete(RecordUniqueValue).where(
            RecordUniqueValue.collection == self.collection,
            RecordUniqueValue.record_key == record_key,
        )
        if field is not None:
            stmt = stmt.where(RecordUniqueValue.field == field)
        await self.session.execute(stmt)

    async def find_by_unique(self, field: str, value: str) -> Record | None:
        """Return the live record holding a unique value."""
        stmt = (
            select(Record)
            .join(RecordUniqueValue, RecordUniqueValue.record_key == Record.key)
            .where(
                RecordUniqueValue.collection == self.collection,
                RecordUniqueValue.field == field,
                RecordUniqueValue.value == value,
                *self._live(),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()
