"""Resource CRUD endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Header, Query, status

from resource_api.api.dependencies import (
    CurrentIdentityDep,
    SelfIdentityDep,
    SettingsDep,
    StoreDep,
)
from resource_api.core.errors import ValidationFailed
from resource_api.schemas.record import MessageResponse, Pagination, RecordPage, RecordResponse

router = APIRouter(prefix="/resources", tags=["resources"])

FieldsBody = Annotated[dict[str, Any], Body(..., description="Field name to value")]


def _parse_if_match(if_match: str | None) -> int | None:
    if if_match is None:
        return None
    try:
        return int(if_match.strip().strip('"'))
    except ValueError as err:
        raise ValidationFailed.single("If-Match", "Expected a record version number") from err


@router.get("", response_model=RecordPage)
async def list_resources(
    store: StoreDep,
    settings: SettingsDep,
    identity: CurrentIdentityDep,
    page: int = Query(1, description="1-indexed page number"),
    page_size: int | None = Query(None, alias="pageSize", description="Records per page"),
    sort: str | None = Query(None, description="Comma-separated fields, '-' for descending"),
    filter_terms: list[str] = Query([], alias="filter", description="field:value equality terms"),
) -> RecordPage:
    """List records in a deterministic order.

    Records are sorted by `sort` with the record key as the final tie-breaker,
    so re-requesting a page with no intervening writes returns the same data.
    """
    listing = await store.list(
        filters=filter_terms,
        sort=sort,
        page=page,
        page_size=settings.default_page_size if page_size is None else page_size,
    )
    return RecordPage(
        data=[RecordResponse.from_record(record) for record in listing.records],
        pagination=Pagination(
            page=listing.page,
            page_size=listing.page_size,
            total=listing.total,
            total_pages=listing.total_pages,
        ),
    )


@router.get("/{record_id}", response_model=RecordResponse)
async def get_resource(
    record_id: str,
    store: StoreDep,
    identity: CurrentIdentityDep,
) -> RecordResponse:
    """Get a specific record by ID."""
    return RecordResponse.from_record(await store.get_by_id(record_id))


@router.post("", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
async def create_resource(fields: FieldsBody, store: StoreDep) -> RecordResponse:
    """Create a record. The credential field is hashed and never echoed back."""
    return RecordResponse.from_record(await store.create(fields))


@router.put("/{record_id}", response_model=RecordResponse)
async def update_resource(
    record_id: str,
    fields: FieldsBody,
    store: StoreDep,
    identity: SelfIdentityDep,
    if_match: Annotated[str | None, Header(alias="If-Match")] = None,
) -> RecordResponse:
    """Update fields of the caller's own record.

    An `If-Match: <version>` header turns the write into a compare-and-swap.
    """
    record = await store.update(record_id, fields, expected_version=_parse_if_match(if_match))
    return RecordResponse.from_record(record)


@router.delete("/{record_id}", response_model=MessageResponse)
async def delete_resource(
    record_id: str,
    store: StoreDep,
    identity: SelfIdentityDep,
) -> MessageResponse:
    """Delete the caller's own record."""
    await store.delete(record_id)
    return MessageResponse(message=f"Record {record_id} deleted")
