"""Application orchestration entry points."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from relinker.adapters.filesystem import JsonReconcilerStore
from relinker.adapters.record_service import build_record_service_client
from relinker.config.reconcile import get_reconcile_settings
from relinker.config.references import DEFAULT_REFERENCE_OPTIONS
from relinker.config.storage import get_storage_config
from relinker.domain.reconciliation import (
    ReconcilerStage,
    ReconciliationResult,
    reconcile_parent_records,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from relinker.config.storage import StorageConfig
    from relinker.domain.ports.persistence import ReconcilerStore
    from relinker.domain.ports.record_service import RecordService
    from relinker.domain.reconciliation import ReferenceConfigs
    from relinker.domain.records import RecordOptions

log = getLogger(__name__)


def build_reconciler_store(
    parent_record_type: str,
    *,
    storage: StorageConfig | None = None,
) -> JsonReconcilerStore:
    storage_config = storage or get_storage_config()
    return JsonReconcilerStore(storage_config.reconciler_dir(parent_record_type), parent_record_type)


def initialize_reconciler(
    *,
    parent_record_type: str,
    overwrite: bool = False,
    store: JsonReconcilerStore | None = None,
) -> JsonReconcilerStore:
    """Create empty state and history files for ``parent_record_type``."""

    effective_store = store or build_reconciler_store(parent_record_type)
    effective_store.initialize(overwrite=overwrite)
    return effective_store


def run_reconciliation(
    *,
    parent_record_type: str,
    parent_ids: Sequence[str],
    placeholder_ids: Sequence[str],
    new_records: Iterable[RecordOptions],
    references: ReferenceConfigs | None = None,
    service: RecordService | None = None,
    store: ReconcilerStore | None = None,
    stop_after: ReconcilerStage = ReconcilerStage.END,
    save_interval: int | None = None,
    rectify: bool = True,
    snapshot: bool = False,
) -> ReconciliationResult:
    """Replace parent records against the configured Record Service."""

    settings = get_reconcile_settings()
    effective_service = service or build_record_service_client(
        request_delay_seconds=settings.request_delay_seconds
    )
    effective_store = store or build_reconciler_store(parent_record_type)
    effective_references = references if references is not None else DEFAULT_REFERENCE_OPTIONS
    log.info(
        f"Starting reconciliation: type={parent_record_type}, parents={len(parent_ids)}, "
        f"placeholders={len(placeholder_ids)}, child_types={sorted(effective_references)}, "
        f"stop_after={stop_after}"
    )

    result = reconcile_parent_records(
        service=effective_service,
        store=effective_store,
        parent_record_type=parent_record_type,
        parent_ids=parent_ids,
        placeholder_ids=placeholder_ids,
        new_records=new_records,
        references=effective_references,
        stop_after=stop_after,
        save_interval=save_interval or settings.save_interval,
        rectify=rectify,
        snapshot=snapshot,
    )

    log.info(
        f"Finished reconciliation: completed={len(result.completed_parents)}, "
        f"failed={len(result.failed_parents)}"
    )
    return result


@dataclass(slots=True, frozen=True)
class ReconcilerSummary:
    current_stage: str
    first_update_children: int
    second_update_children: int
    items_deleted: int
    new_items: int
    errors_by_stage: dict[str, int]


def summarize_reconciler_state(
    *,
    parent_record_type: str,
    store: ReconcilerStore | None = None,
) -> ReconcilerSummary:
    effective_store = store or build_reconciler_store(parent_record_type)
    state = effective_store.load_state()
    return ReconcilerSummary(
        current_stage=str(state.current_stage),
        first_update_children=sum(
            len(ids) for children in state.first_update.values() for ids in children.values()
        ),
        second_update_children=sum(
            len(ids) for children in state.second_update.values() for ids in children.values()
        ),
        items_deleted=len(state.items_deleted),
        new_items=len(state.new_items),
        errors_by_stage=dict(Counter(str(error.get("stage")) for error in state.errors)),
    )
