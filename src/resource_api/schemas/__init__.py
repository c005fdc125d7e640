"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .record import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    Pagination,
    RecordPage,
    RecordResponse,
)
from .user import USER_SCHEMA

__all__ = [
    "LoginRequest", "LoginResponse",
    "MessageResponse",
    "Pagination", "RecordPage", "RecordResponse",
    "USER_SCHEMA",
]
