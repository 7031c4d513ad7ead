"""File-backed reconciler store and input loaders."""

from __future__ import annotations

from .inputs import load_id_list, load_new_records, load_reference_configs
from .store import JsonReconcilerStore

__all__ = [
    "JsonReconcilerStore",
    "load_id_list",
    "load_new_records",
    "load_reference_configs",
]
