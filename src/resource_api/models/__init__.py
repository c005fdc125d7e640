# src/resource_api/models/__init__.py
"""SQLAlchemy models for the Resource API."""

from .record import Record, RecordUniqueValue, new_record_key

__all__ = ["Record", "RecordUniqueValue", "new_record_key"]
