"""Tests for the async resource store."""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from resource_api.core.errors import (
    Conflict,
    InternalError,
    NotFound,
    StoreTimeout,
    ValidationFailed,
)
from resource_api.core.security import verify_password
from resource_api.models import Record

JOHN = {"name": "John", "email": "john@example.com", "password": "secret1"}


async def test_create_then_get_round_trips(store):
    created = await store.create(JOHN)
    fetched = await store.get_by_id(created.key)
    assert fetched == created
    assert len(created.key) == 32
    assert created.version == 1
    assert created.fields == {"name": "John", "email": "john@example.com"}


async def test_credential_is_stored_hashed_only(store, db_session):
    created = await store.create(JOHN)
    row = (await db_session.execute(select(Record).where(Record.key == created.key))).scalar_one()
    assert "password" not in row.fields
    assert row.credential_hash != "secret1"
    assert verify_password("secret1", row.credential_hash)


async def test_create_rejects_invalid_input_without_writing(store):
    with pytest.raises(ValidationFailed):
        await store.create({"name": "John"})
    listing = await store.list()
    assert listing.total == 0


async def test_duplicate_unique_value_conflicts(store):
    await store.create(JOHN)
    with pytest.raises(Conflict):
        await store.create({**JOHN, "name": "Johnny", "email": "JOHN@example.com"})


async def test_get_unknown_key_raises_not_found(store):
    with pytest.raises(NotFound):
        await store.get_by_id("0" * 32)


async def test_update_merges_fields_and_bumps_version(store):
    created = await store.create({**JOHN, "bio": "hi"})
    updated = await store.update(created.key, {"name": "Jonathan", "bio": None, "age": 40})
    assert updated.key == created.key
    assert updated.version == 2
    assert updated.fields == {"name": "Jonathan", "email": "john@example.com", "age": 40}
    assert updated.created_at == created.created_at
    assert updated.updated_at >= created.updated_at


async def test_update_with_stale_version_conflicts(store):
    created = await store.create(JOHN)
    await store.update(created.key, {"name": "Jon"}, expected_version=1)
    with pytest.raises(Conflict):
        await store.update(created.key, {"name": "Johnny"}, expected_version=1)
    assert (await store.get_by_id(created.key)).fields["name"] == "Jon"


async def test_update_unknown_key_raises_not_found(store):
    with pytest.raises(NotFound):
        await store.update("f" * 32, {"name": "Nobody"})


async def test_update_moves_unique_claim(store):
    john = await store.create(JOHN)
    await store.update(john.key, {"email": "jon@example.com"})
    # The old address is free again; the new one is taken.
    await store.create({**JOHN, "name": "Other John"})
    with pytest.raises(Conflict):
        await store.create({**JOHN, "email": "jon@example.com"})


async def test_update_password_rehashes(store):
    created = await store.create(JOHN)
    await store.update(created.key, {"password": "changed1"})
    assert await store.verify_credential(created.key, "changed1") is True
    assert await store.verify_credential(created.key, "secret1") is False


async def test_delete_then_get_raises_not_found(store):
    created = await store.create(JOHN)
    await store.delete(created.key)
    with pytest.raises(NotFound):
        await store.get_by_id(created.key)
    with pytest.raises(NotFound):
        await store.delete(created.key)


async def test_delete_keeps_tombstone_and_frees_unique_values(store, db_session):
    created = await store.create(JOHN)
    await store.delete(created.key)
    row = (await db_session.execute(select(Record).where(Record.key == created.key))).scalar_one()
    assert row.deleted is True
    assert row.fields == {}
    assert row.credential_hash is None

    again = await store.create(JOHN)
    assert again.key != created.key


async def test_find_by_field_and_verify_credential(store):
    created = await store.create(JOHN)
    found = await store.find_by_field("email", "John@Example.com")
    assert found.key == created.key
    assert await store.verify_credential(created.key, "secret1") is True
    assert await store.verify_credential(created.key, "wrong-password") is False
    with pytest.raises(NotFound):
        await store.find_by_field("email", "nobody@example.com")
    with pytest.raises(ValidationFailed):
        await store.find_by_field("name", "John")


async def test_list_paginates_deterministically(store):
    for index in range(7):
        await store.create(
            {"name": f"User {index}", "email": f"user{index}@example.com", "password": "secret1"}
        )

    first = await store.list(page=1, page_size=3, sort="name")
    again = await store.list(page=1, page_size=3, sort="name")
    last = await store.list(page=3, page_size=3, sort="name")

    assert first == again
    assert first.total == 7
    assert first.total_pages == 3
    assert [r.fields["name"] for r in first.records] == ["User 0", "User 1", "User 2"]
    assert [r.fields["name"] for r in last.records] == ["User 6"]


async def test_list_breaks_ties_by_key(store):
    for index in range(4):
        await store.create(
            {"name": "Same", "email": f"same{index}@example.com", "password": "secret1"}
        )
    listing = await store.list(sort="name", page_size=10)
    keys = [r.key for r in listing.records]
    assert keys == sorted(keys)


async def test_list_sort_descending_and_filter(store):
    await store.create({**JOHN, "age": 30})
    await store.create({"name": "Jane", "email": "jane@example.com", "password": "secret1", "age": 25})
    await store.create({"name": "Joe", "email": "joe@example.com", "password": "secret1", "age": 30})

    by_age = await store.list(sort="-age,name")
    assert [r.fields["name"] for r in by_age.records] == ["Joe", "John", "Jane"]

    thirty = await store.list(filters=["age:30"], sort="name")
    assert thirty.total == 2
    assert [r.fields["name"] for r in thirty.records] == ["Joe", "John"]


async def test_list_excludes_deleted_records(store):
    john = await store.create(JOHN)
    await store.create({"name": "Jane", "email": "jane@example.com", "password": "secret1"})
    await store.delete(john.key)
    listing = await store.list()
    assert listing.total == 1
    assert [r.fields["name"] for r in listing.records] == ["Jane"]


@pytest.mark.parametrize(
    ("kwargs", "field"),
    [
        ({"page": 0}, "page"),
        ({"page_size": 0}, "pageSize"),
        ({"page_size": 101}, "pageSize"),
        ({"sort": "password"}, "sort"),
        ({"sort": "nope"}, "sort"),
        ({"filters": ["age"]}, "filter"),
        ({"filters": ["age:old"]}, "filter"),
        ({"filters": ["password:secret1"]}, "filter"),
    ],
)
async def test_list_rejects_bad_parameters(store, kwargs, field):
    with pytest.raises(ValidationFailed) as excinfo:
        await store.list(**kwargs)
    assert excinfo.value.errors[0].field == field


async def test_slow_store_times_out(store, monkeypatch):
    store.timeout_seconds = 0.05

    async def slow_get(key):
        await asyncio.sleep(1)

    monkeypatch.setattr(store.repo, "get", slow_get)
    with pytest.raises(StoreTimeout):
        await store.get_by_id("a" * 32)


async def test_database_errors_are_translated(store, monkeypatch):
    async def broken_get(key):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(store.repo, "get", broken_get)
    with pytest.raises(InternalError):
        await store.get_by_id("a" * 32)


async def test_integrity_errors_become_conflicts(store, db_session, monkeypatch):
    async def racing_owner(field, value):
        return None

    await store.create(JOHN)
    db_session.expunge_all()
    # Skip the pre-check so the unique constraint itself fires.
    monkeypatch.setattr(store.repo, "unique_owner", racing_owner)
    with pytest.raises(Conflict):
        await store.create({**JOHN, "name": "Twin"})
