"""Business logic services for the Resource API."""

from .store import RecordListing, ResourceRecord, ResourceStore
from .validation import FieldSpec, RecordSchema

__all__ = [
    "FieldSpec",
    "RecordListing",
    "RecordSchema",
    "ResourceRecord",
    "ResourceStore",
]
