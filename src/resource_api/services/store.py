"""Resource store: validated, bounded CRUD over one collection of records.

The store is the only component that talks to the database on behalf of the
HTTP layer. It validates input before any mutation, hashes credentials,
enforces unique fields, bounds every database round-trip by a timeout and
translates database exceptions into the error taxonomy.
"""
from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import ColumnElement
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from resource_api.core.errors import (
    ApiError,
    Conflict,
    InternalError,
    NotFound,
    StoreTimeout,
    ValidationFailed,
)
from resource_api.core.security import hash_password, verify_password
from resource_api.db.time import as_utc, utcnow
from resource_api.models.record import Record, new_record_key
from resource_api.repositories.record_repo import RecordRepository
from resource_api.services.validation import RecordSchema

if TYPE_CHECKING:
    from resource_api.services.cache import RecordCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Columns addressable by `sort` in addition to the schema's public fields.
_COLUMN_SORTS: dict[str, Any] = {
    "created_at": Record.created_at,
    "updated_at": Record.updated_at,
}
DEFAULT_SORT = "created_at"


@dataclass(frozen=True)
class ResourceRecord:
    """Public snapshot of a stored record. Never carries the credential."""

    key: str
    fields: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    @classmethod
    def from_model(cls, record: Record) -> ResourceRecord:
        return cls(
            key=record.key,
            fields=dict(record.fields or {}),
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
            version=record.version,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "fields": self.fields,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResourceRecord:
        return cls(
            key=data["key"],
            fields=dict(data["fields"]),
            created_at=as_utc(datetime.fromisoformat(data["created_at"])),
            updated_at=as_utc(datetime.fromisoformat(data["updated_at"])),
            version=int(data["version"]),
        )


@dataclass(frozen=True)
class RecordListing:
    """One page of records plus the total number of matches."""

    records: list[ResourceRecord]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


class ResourceStore:
    """CRUD persistence for the collection described by `schema`."""

    def __init__(
        self,
        session: AsyncSession,
        schema: RecordSchema,
        *,
        timeout_seconds: float = 5.0,
        max_page_size: int = 100,
        bcrypt_rounds: int = 12,
        cache: RecordCache | None = None,
    ) -> None:
        self.session = session
        self.schema = schema
        self.timeout_seconds = timeout_seconds
        self.max_page_size = max_page_size
        self.bcrypt_rounds = bcrypt_rounds
        self.cache = cache
        self.repo = RecordRepository(session, schema.collection)

    # --- plumbing ----------------------------------------------------------------------
    async def _bounded(self, operation: Awaitable[T], name: str) -> T:
        """Run a database operation under the store timeout and error translation."""
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout_seconds)
        except TimeoutError as err:
            logger.warning("Store %s exceeded %.2fs", name, self.timeout_seconds)
            raise StoreTimeout(f"Store operation '{name}' timed out") from err
        except ApiError:
            await self.session.rollback()
            raise
        except IntegrityError as err:
            await self.session.rollback()
            logger.warning("Integrity error during %s: %s", name, err.orig)
            raise Conflict("Record conflicts with an existing record") from err
        except SQLAlchemyError as err:
            await self.session.rollback()
            logger.warning("Database error during %s: %s", name, err)
            raise InternalError("Storage failure") from err

    async def _hash_secret(self, plaintext: str) -> str:
        try:
            return await asyncio.to_thread(hash_password, plaintext, self.bcrypt_rounds)
        except ValueError as err:
            raise ValidationFailed.single(self.schema.credential_field or "credential", str(err)) from err

    def _split_secret(self, fields: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        credential_field = self.schema.credential_field
        if credential_field is None:
            return fields, None
        secret = fields.pop(credential_field, None)
        return fields, secret

    async def _sync_unique_values(
        self,
        record_key: str,
        old: Mapping[str, Any],
        new: Mapping[str, Any],
    ) -> None:
        """Move unique-value claims from `old` field values to `new` ones."""
        for name in self.schema.unique_fields:
            old_value, new_value = old.get(name), new.get(name)
            if old_value == new_value:
                continue
            if new_value is not None:
                owner = await self.repo.unique_owner(name, str(new_value))
                if owner is not None and owner != record_key:
                    raise Conflict(f"A record with this {name} already exists")
            if old_value is not None:
                await self.repo.release_unique(record_key, name)
            if new_value is not None:
                self.repo.claim_unique(name, str(new_value), record_key)

    # --- create ------------------------------------------------------------------------
    async def create(self, raw_fields: Mapping[str, Any]) -> ResourceRecord:
        """Validate and persist a new record.

        Raises:
            ValidationFailed: If the fields do not satisfy the schema.
            Conflict: If a unique field value is already taken.
        """
        fields, secret = self._split_secret(self.schema.validate(raw_fields))
        credential_hash = await self._hash_secret(secret) if secret is not None else None
        record = await self._bounded(self._create(fields, credential_hash), "create")
        logger.info("Created %s record %s", self.schema.collection, record.key)
        return record

    async def _create(self, fields: dict[str, Any], credential_hash: str | None) -> ResourceRecord:
        now = utcnow()
        record = Record(
            key=new_record_key(),
            collection=self.schema.collection,
            fields=fields,
            credential_hash=credential_hash,
            version=1,
            deleted=False,
            created_at=now,
            updated_at=now,
        )
        self.repo.add(record)
        # The record row must exist before unique claims reference it.
        await self.session.flush()
        await self._sync_unique_values(record.key, {}, fields)
        await self.session.commit()
        await self.session.refresh(record)
        return ResourceRecord.from_model(record)

    # --- read --------------------------------------------------------------------------
    async def get_by_id(self, key: str) -> ResourceRecord:
        """Return the live record with `key`.

        Raises:
            NotFound: If no live record has that key.
        """
        if self.cache is not None:
            cached = await self.cache.get(self.schema.collection, key)
            if cached is not None:
                return cached
        record = await self._bounded(self.repo.get(key), "get")
        if record is None:
            raise NotFound(f"Record {key} not found")
        resource = ResourceRecord.from_model(record)
        if self.cache is not None:
            await self.cache.set(self.schema.collection, resource)
        return resource

    async def find_by_field(self, name: str, value: Any) -> ResourceRecord:
        """Return the live record holding `value` in unique field `name`."""
        if name not in self.schema.unique_fields:
            raise ValidationFailed.single(name, f"'{name}' is not a unique field")
        normalized = self.schema.coerce(name, value, source=name)
        record = await self._bounded(self.repo.find_by_unique(name, str(normalized)), "find")
        if record is None:
            raise NotFound(f"No record with that {name}")
        return ResourceRecord.from_model(record)

    async def verify_credential(self, key: str, plaintext: str) -> bool:
        """Check `plaintext` against the credential stored for `key`."""
        record = await self._bounded(self.repo.get(key), "verify")
        if record is None or record.credential_hash is None:
            return False
        return await asyncio.to_thread(verify_password, plaintext, record.credential_hash)

    def _field_expression(self, name: str) -> Any:
        spec = self.schema.fields[name]
        element = Record.fields[name]
        if spec.type == "integer":
            return element.as_integer()
        if spec.type == "number":
            return element.as_float()
        if spec.type == "boolean":
            return element.as_boolean()
        return element.as_string()

    def _filter_conditions(self, filters: Sequence[str]) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        for term in filters:
            name, sep, raw_value = term.partition(":")
            name = name.strip()
            if not sep or not name:
                raise ValidationFailed.single("filter", f"Expected 'field:value', got '{term}'")
            value = self.schema.coerce(name, raw_value, source="filter")
            conditions.append(self._field_expression(name) == value)
        return conditions

    def _order_by(self, sort: str | None) -> list[Any]:
        order: list[Any] = []
        for raw in (sort or DEFAULT_SORT).split(","):
            token = raw.strip()
            if not token:
                continue
            descending = token.startswith("-")
            name = token.lstrip("-+")
            if name in _COLUMN_SORTS:
                expression = _COLUMN_SORTS[name]
            elif name in self.schema.public_fields:
                expression = self._field_expression(name)
            else:
                raise ValidationFailed.single("sort", f"Cannot sort by '{name}'")
            order.append(expression.desc() if descending else expression.asc())
        # Key ascending makes the ordering total.
        order.append(Record.key.asc())
        return order

    async def list(
        self,
        *,
        filters: Sequence[str] = (),
        sort: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> RecordListing:
        """Return one page of live records.

        Args:
            filters: ``field:value`` equality terms, all of which must match.
            sort: Comma-separated field names, ``-`` prefix for descending.
            page: 1-indexed page number.
            page_size: Records per page, at most `max_page_size`.
        """
        if page < 1:
            raise ValidationFailed.single("page", "Page must be at least 1")
        if page_size < 1 or page_size > self.max_page_size:
            raise ValidationFailed.single(
                "pageSize", f"Page size must be between 1 and {self.max_page_size}"
            )
        conditions = self._filter_conditions(filters)
        order_by = self._order_by(sort)
        skip = (page - 1) * page_size

        async def _list() -> tuple[list[Record], int]:
            total = await self.repo.count(conditions)
            rows = await self.repo.list_page(conditions, order_by, offset=skip, limit=page_size)
            return rows, total

        rows, total = await self._bounded(_list(), "list")
        return RecordListing(
            records=[ResourceRecord.from_model(row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    # --- update ------------------------------------------------------------------------
    async def update(
        self,
        key: str,
        raw_fields: Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> ResourceRecord:
        """Merge `raw_fields` into the record with `key`.

        Concurrent writers to the same key resolve last-write-wins unless
        `expected_version` is given, in which case a stale version raises
        `Conflict`.
        """
        fields, secret = self._split_secret(self.schema.validate(raw_fields, partial=True))
        credential_hash = await self._hash_secret(secret) if secret is not None else None
        record = await self._bounded(
            self._update(key, fields, credential_hash, expected_version), "update"
        )
        if self.cache is not None:
            await self.cache.set(self.schema.collection, record)
        logger.info("Updated %s record %s (version %d)", self.schema.collection, key, record.version)
        return record

    async def _update(
        self,
        key: str,
        fields: dict[str, Any],
        credential_hash: str | None,
        expected_version: int | None,
    ) -> ResourceRecord:
        record = await self.repo.get(key)
        if record is None:
            raise NotFound(f"Record {key} not found")
        if expected_version is not None and record.version != expected_version:
            raise Conflict(
                f"Record {key} is at version {record.version}, not {expected_version}"
            )

        merged = dict(record.fields or {})
        for name, value in fields.items():
            if value is None:
                merged.pop(name, None)
            else:
                merged[name] = value
        await self._sync_unique_values(key, record.fields or {}, merged)

        values: dict[str, Any] = {"fields": merged, "updated_at": utcnow()}
        if credential_hash is not None:
            values["credential_hash"] = credential_hash
        applied = await self.repo.apply_update(key, values, expected_version=expected_version)
        if not applied:
            if expected_version is None:
                raise NotFound(f"Record {key} not found")
            raise Conflict(f"Record {key} was modified concurrently")
        await self.session.commit()
        await self.session.refresh(record)
        return ResourceRecord.from_model(record)

    # --- delete ------------------------------------------------------------------------
    async def delete(self, key: str) -> None:
        """Delete the record with `key`; its key is never reissued.

        Raises:
            NotFound: If no live record has that key.
        """
        version = await self._bounded(self._delete(key), "delete")
        if self.cache is not None:
            await self.cache.mark_deleted(self.schema.collection, key, version)
        logger.info("Deleted %s record %s", self.schema.collection, key)

    async def _delete(self, key: str) -> int:
        record = await self.repo.get(key)
        if record is None:
            raise NotFound(f"Record {key} not found")
        await self.repo.release_unique(key)
        record.deleted = True
        record.fields = {}
        record.credential_hash = None
        record.version += 1
        record.updated_at = utcnow()
        await self.session.commit()
        return record.version
