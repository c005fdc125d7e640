"""Record-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from resource_api.services.store import ResourceRecord


class RecordResponse(BaseModel):
    """Schema for a record returned by the API. Never carries the credential."""

    id: str = Field(..., description="Server-generated record key")
    fields: dict[str, Any] = Field(..., description="Public field values")
    created_at: datetime
    updated_at: datetime
    version: int = Field(..., description="Incremented on every update")

    @classmethod
    def from_record(cls, record: ResourceRecord) -> RecordResponse:
        return cls(
            id=record.key,
            fields=dict(record.fields),
            created_at=record.created_at,
            updated_at=record.updated_at,
            version=record.version,
        )


class Pagination(BaseModel):
    """Pagination metadata for list responses."""

    page: int
    page_size: int
    total: int
    total_pages: int


class RecordPage(BaseModel):
    """One page of records."""

    data: list[RecordResponse]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str


class LoginRequest(BaseModel):
    """Credentials submitted to /login."""

    email: str = Field(..., min_length=1, description="Login identifier")
    password: str = Field(..., min_length=1, description="Plaintext password")


class LoginResponse(BaseModel):
    """Response returned after successful login."""

    token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type (always 'bearer')")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    identity: RecordResponse
