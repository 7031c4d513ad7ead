"""Two-phase reconciliation state machine.

Per parent id, phase one moves every dependent reference onto a placeholder
value, then the parent is deleted and recreated, and phase two moves the
placeholders onto the replacement's internal id. Progress is written to the
store after each child type, every ``save_interval`` children and after each
parent, so a rerun with the same store resumes where the last one stopped.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from relinker.domain.records import RecordType, is_numeric_id

from .context import DEFAULT_SAVE_INTERVAL, ReconcilerContext
from .contracts import (
    STOPPABLE_STAGES,
    DependentDictionary,
    ReconcilerError,
    ReconcilerStage,
    ReferenceFieldUpdate,
    UpdatePhase,
)
from .dependents import generate_dependent_dictionary, generate_record_dictionary
from .execute import process_reference_update
from .generate import generate_placeholder_update
from .lifecycle import handle_create, handle_delete
from .rectify import rectify_state
from .state import DependentUpdateHistory, ReconcilerState, record_updates, update_state

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from datetime import datetime

    from relinker.domain.ports.persistence import ReconcilerStore
    from relinker.domain.ports.record_service import RecordService
    from relinker.domain.records import RecordOptions

    from .contracts import ReferenceConfigs

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationResult:
    state: ReconcilerState
    history: DependentUpdateHistory
    dependents: DependentDictionary = field(default_factory=dict)
    failed_parents: list[str] = field(default_factory=list)
    completed_parents: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _Checkpoint:
    """Counts processed children and flushes pending history every ``interval``."""

    context: ReconcilerContext
    pending: DependentUpdateHistory = field(default_factory=dict)
    processed: int = 0

    def record(
        self,
        parent_id: str,
        phase: UpdatePhase,
        child_type: str,
        child_id: str,
        updates: list[ReferenceFieldUpdate],
    ) -> None:
        record_updates(self.pending, parent_id, phase, child_type, child_id, updates)
        self.processed += 1
        if self.processed % self.context.save_interval == 0:
            self.flush()

    def flush(self) -> None:
        self.context.save_history(self.pending)
        self.pending = {}


def _restrict_line_cache(
    update: ReferenceFieldUpdate,
    placeholders: Iterable[str],
) -> ReferenceFieldUpdate:
    """Copy of ``update`` covering only the lines moved onto ``placeholders``."""
    return replace(
        update,
        line_cache={
            placeholder: dict(update.line_cache[placeholder]) for placeholder in placeholders
        },
    )


def _run_first_phase(
    context: ReconcilerContext,
    parent_id: str,
    children: Mapping[str, list[str]],
    placeholder_ids: Sequence[str],
    checkpoint: _Checkpoint,
) -> bool:
    # children are the live dependents: one that already has history still holds unmoved lines
    state = context.state
    if not any(children.values()):
        return True

    old_reference = context.resolve_parent_internal_id(parent_id)
    if isinstance(old_reference, ReconcilerError):
        context.record_error(parent_id, old_reference)
        return False

    for child_type, child_ids in children.items():
        reference = context.references.get(child_type)
        if reference is None:
            context.record_error(
                parent_id,
                ReconcilerError(
                    source="process_dependent_dictionary",
                    message=f"No reference configuration for child type {child_type}",
                ),
                child_record_type=child_type,
            )
            return False

        for child_id in child_ids:
            context.set_stage(ReconcilerStage.GENERATE_PLACEHOLDER_UPDATE)
            update = generate_placeholder_update(
                context.service,
                parent_id=parent_id,
                old_reference_id=old_reference,
                parent_record_type=context.parent_record_type,
                child_record_type=child_type,
                child_internal_id=child_id,
                reference=reference,
                placeholder_ids=placeholder_ids,
            )
            if isinstance(update, ReconcilerError):
                context.record_error(
                    parent_id, update, child_record_type=child_type, child_internal_id=child_id
                )
                return False

            if not update.line_cache and state.is_first_update_complete(
                parent_id, child_type, child_id
            ):
                continue

            context.set_stage(ReconcilerStage.RUN_PLACEHOLDER_UPDATE)
            applied: list[str] = []
            error = process_reference_update(
                context.service,
                parent_id=parent_id,
                child_record_type=child_type,
                child_internal_id=child_id,
                update=update,
                reference=reference,
                applied=applied,
            )
            if error is not None:
                if applied:
                    partial = _restrict_line_cache(update, applied)
                    checkpoint.record(parent_id, UpdatePhase.FIRST, child_type, child_id, [partial])
                context.record_error(
                    parent_id,
                    error,
                    child_record_type=child_type,
                    child_internal_id=child_id,
                    line_cache=update.line_cache,
                )
                return False
            checkpoint.record(parent_id, UpdatePhase.FIRST, child_type, child_id, [update])

        if child_ids:
            checkpoint.flush()
    return True


def _second_phase_updates(
    previous: Iterable[ReferenceFieldUpdate],
    new_internal_id: str,
) -> list[ReferenceFieldUpdate]:
    return [
        ReferenceFieldUpdate(
            record_type=prev.record_type,
            sublist_id=prev.sublist_id,
            reference_field_id=prev.reference_field_id,
            old_reference=placeholder,
            validation_dictionary=dict(prev.validation_dictionary),
            line_cache={new_internal_id: dict(cached)},
        )
        for prev in previous
        for placeholder, cached in prev.line_cache.items()
    ]


def _run_second_phase(
    context: ReconcilerContext,
    parent_id: str,
    new_internal_id: str,
    checkpoint: _Checkpoint,
) -> bool:
    state = context.state
    first_phase = context.history.get(parent_id, {}).get(UpdatePhase.FIRST, {})
    for child_type, children in first_phase.items():
        reference = context.references.get(child_type)
        if reference is None:
            context.record_error(
                parent_id,
                ReconcilerError(
                    source="process_dependent_dictionary",
                    message=f"No reference configuration for child type {child_type}",
                ),
                child_record_type=child_type,
            )
            return False

        changed = False
        for child_id, previous in children.items():
            if state.is_second_update_complete(parent_id, child_type, child_id):
                continue
            context.set_stage(ReconcilerStage.GENERATE_NEW_ITEM_UPDATE)
            applied: list[ReferenceFieldUpdate] = []
            for update in _second_phase_updates(previous, new_internal_id):
                context.set_stage(ReconcilerStage.RUN_NEW_ITEM_UPDATE)
                error = process_reference_update(
                    context.service,
                    parent_id=parent_id,
                    child_record_type=child_type,
                    child_internal_id=child_id,
                    update=update,
                    reference=reference,
                    is_second_update=True,
                )
                if error is not None:
                    context.record_error(
                        parent_id,
                        error,
                        child_record_type=child_type,
                        child_internal_id=child_id,
                        old_reference=update.old_reference,
                    )
                    return False
                applied.append(update)
            if applied:
                checkpoint.record(parent_id, UpdatePhase.SECOND, child_type, child_id, applied)
                changed = True

        if changed:
            checkpoint.flush()
    return True


def _reconcile_parent(
    context: ReconcilerContext,
    parent_id: str,
    children: Mapping[str, list[str]],
    placeholder_ids: Sequence[str],
    stop_after: ReconcilerStage,
    checkpoint: _Checkpoint,
) -> bool:
    """Drive one parent through both phases; False when an error stopped it."""
    state = context.state
    if parent_id not in state.items_deleted:
        if not _run_first_phase(context, parent_id, children, placeholder_ids, checkpoint):
            return False
        checkpoint.flush()
    if stop_after is ReconcilerStage.RUN_PLACEHOLDER_UPDATE:
        log.info(f"[{parent_id}] stopping after placeholder updates")
        return True

    error = handle_delete(
        context, parent_id, verify_only=stop_after is ReconcilerStage.VALIDATE_FIRST_UPDATE
    )
    if error is not None:
        context.record_error(parent_id, error)
        return False
    if stop_after in (ReconcilerStage.VALIDATE_FIRST_UPDATE, ReconcilerStage.DELETE_OLD_ITEM):
        log.info(f"[{parent_id}] stopping after {stop_after}")
        return True

    new_internal_id = handle_create(context, parent_id)
    if isinstance(new_internal_id, ReconcilerError):
        context.record_error(parent_id, new_internal_id)
        return False
    if stop_after is ReconcilerStage.CREATE_NEW_ITEM:
        log.info(f"[{parent_id}] stopping after {stop_after}")
        return True

    if not _run_second_phase(context, parent_id, new_internal_id, checkpoint):
        return False
    context.set_stage(ReconcilerStage.END)
    return True


def process_dependent_dictionary(
    context: ReconcilerContext,
    dependents: DependentDictionary,
    placeholder_ids: Sequence[str],
    *,
    stop_after: ReconcilerStage = ReconcilerStage.END,
) -> tuple[list[str], list[str]]:
    """Reconcile every parent in ``dependents``; returns (completed, failed) parent ids.

    Errors stop only the parent they occur on. State is rebuilt from history
    and written after each parent.
    """
    completed: list[str] = []
    failed: list[str] = []
    for index, (parent_id, children) in enumerate(dependents.items(), start=1):
        log.info(f"[{parent_id}] reconciling parent {index}/{len(dependents)}")
        context.set_stage(ReconcilerStage.PRE_PROCESS)
        checkpoint = _Checkpoint(context)
        try:
            ok = _reconcile_parent(
                context, parent_id, children, placeholder_ids, stop_after, checkpoint
            )
        finally:
            checkpoint.flush()
            stage = context.state.current_stage
            update_state(context.state, context.history)
            context.state.current_stage = stage
            context.save_state()
        (completed if ok else failed).append(parent_id)

    update_state(context.state, context.history)
    return completed, failed


def _validate_run_arguments(
    parent_record_type: str,
    parent_ids: Sequence[str],
    placeholder_ids: Sequence[str],
    references: ReferenceConfigs,
    stop_after: ReconcilerStage,
    save_interval: int,
) -> None:
    if parent_record_type not in set(RecordType):
        raise ValueError(f"Unknown parent record type: {parent_record_type!r}")
    if not parent_ids or not all(isinstance(value, str) and value.strip() for value in parent_ids):
        raise ValueError("parent_ids must be a non-empty list of strings")
    if not placeholder_ids or not all(is_numeric_id(value) for value in placeholder_ids):
        raise ValueError("placeholder_ids must be a non-empty list of numeric ids")
    if not references:
        raise ValueError("At least one child reference configuration is required")
    if stop_after not in STOPPABLE_STAGES:
        raise ValueError(f"Cannot stop after stage {stop_after}")
    if save_interval < 1:
        raise ValueError("save_interval must be at least 1")


def reconcile_parent_records(
    *,
    service: RecordService,
    store: ReconcilerStore,
    parent_record_type: str,
    parent_ids: Sequence[str],
    placeholder_ids: Sequence[str],
    new_records: Iterable[RecordOptions],
    references: ReferenceConfigs,
    stop_after: ReconcilerStage = ReconcilerStage.END,
    save_interval: int = DEFAULT_SAVE_INTERVAL,
    parent_internal_ids: Mapping[str, str] | None = None,
    rectify: bool = True,
    snapshot: bool = False,
    clock: Callable[[], datetime] | None = None,
) -> ReconciliationResult:
    """Replace each parent record and repoint its dependents, resuming from the store.

    Missing or malformed state/history raises from the store and halts the run.
    """
    _validate_run_arguments(
        parent_record_type, parent_ids, placeholder_ids, references, stop_after, save_interval
    )
    unique_parent_ids = list(dict.fromkeys(parent_ids))

    state = store.load_state()
    history = store.load_history()
    context = ReconcilerContext(
        service=service,
        store=store,
        parent_record_type=parent_record_type,
        references=references,
        state=state,
        history=history,
        create_options=generate_record_dictionary(new_records),
        parent_internal_ids=dict(parent_internal_ids or {}),
        save_interval=save_interval,
        snapshot=snapshot,
    )
    if clock is not None:
        context.clock = clock

    context.set_stage(ReconcilerStage.VALIDATE_INITIAL_STATE)
    update_state(state, history)
    if rectify:
        rectify_state(context)

    dependents = generate_dependent_dictionary(context, unique_parent_ids)
    log.info(
        f"Found dependents for {sum(1 for children in dependents.values() if children)}"
        f"/{len(unique_parent_ids)} parent(s)"
    )

    completed, failed = process_dependent_dictionary(
        context,
        dependents,
        [str(value) for value in placeholder_ids],
        stop_after=stop_after,
    )

    context.save_history()
    context.save_state()
    log.info(
        f"Reconciliation finished: completed={len(completed)}, failed={len(failed)}, "
        f"errors={len(state.errors)}"
    )
    return ReconciliationResult(
        state=state,
        history=history,
        dependents=dependents,
        failed_parents=failed,
        completed_parents=completed,
    )
