"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import ReconcilerStore, ReconcilerStoreError
from .record_service import RecordService, RecordServiceError

__all__ = [
    "ReconcilerStore",
    "ReconcilerStoreError",
    "RecordService",
    "RecordServiceError",
]
