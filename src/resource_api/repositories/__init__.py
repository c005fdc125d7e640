"""Data access layer."""

from .record_repo import RecordRepository

__all__ = ["RecordRepository"]
