"""Dependent record reconciliation: replace a parent record without dangling references."""

from __future__ import annotations

from .context import ReconcilerContext
from .contracts import (
    CacheOptions,
    DependentDictionary,
    ReconcilerError,
    ReconcilerStage,
    ReferenceConfig,
    ReferenceConfigs,
    ReferenceFieldUpdate,
    UpdatePhase,
)
from .dependents import (
    generate_dependent_dictionary,
    generate_record_dictionary,
    has_dependent_records,
)
from .engine import ReconciliationResult, process_dependent_dictionary, reconcile_parent_records
from .execute import compare_cache_data, process_reference_update
from .generate import generate_placeholder_update
from .lifecycle import handle_create, handle_delete
from .rectify import rectify_state
from .state import (
    DependentUpdateHistory,
    ReconcilerState,
    append_update_history,
    update_state,
)

__all__ = [
    "CacheOptions",
    "DependentDictionary",
    "DependentUpdateHistory",
    "ReconciliationResult",
    "ReconcilerContext",
    "ReconcilerError",
    "ReconcilerStage",
    "ReconcilerState",
    "ReferenceConfig",
    "ReferenceConfigs",
    "ReferenceFieldUpdate",
    "UpdatePhase",
    "append_update_history",
    "compare_cache_data",
    "generate_dependent_dictionary",
    "generate_placeholder_update",
    "generate_record_dictionary",
    "handle_create",
    "handle_delete",
    "has_dependent_records",
    "process_dependent_dictionary",
    "process_reference_update",
    "reconcile_parent_records",
    "rectify_state",
    "update_state",
]
