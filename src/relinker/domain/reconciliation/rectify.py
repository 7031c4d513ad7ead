"""Repair deletion/creation memos left stale by an interrupted run."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import IdProperty

from .contracts import ReconcilerStage, UpdatePhase

if TYPE_CHECKING:
    from .context import ReconcilerContext
    from .state import ParentHistory

log = getLogger(__name__)


def _original_internal_id(entry: ParentHistory) -> str | None:
    for children in entry.get(UpdatePhase.FIRST, {}).values():
        for updates in children.values():
            for update in updates:
                return update.old_reference
    return None


def rectify_state(context: ReconcilerContext) -> int:
    """Reconcile ``items_deleted`` and ``new_items`` with the live parent records.

    A crash between a delete or create call and the following state save
    leaves the memos behind the Record Service. The parent's original internal
    id is the ``old_reference`` of its phase-one updates; comparing it with
    the live record found by logical id tells which step actually happened.
    Returns the number of parents whose memos changed.
    """
    context.set_stage(ReconcilerStage.VALIDATE_INITIAL_STATE)
    state = context.state
    changed = 0
    for parent_id, entry in context.history.items():
        original_id = _original_internal_id(entry)
        if original_id is None:
            continue
        try:
            response = context.service.get_by_id(
                context.parent_record_type, IdProperty.ITEM_ID, parent_id
            )
        except RecordServiceError as exc:
            log.warning(f"[{parent_id}] could not verify parent state: {exc}")
            continue

        live = response.first()
        before = (parent_id in state.items_deleted, state.new_items.get(parent_id))
        if live is None:
            state.mark_deleted(parent_id)
        elif live.internal_id != original_id:
            state.mark_deleted(parent_id)
            state.new_items.setdefault(parent_id, live.internal_id)
        elif parent_id in state.items_deleted:
            state.items_deleted.remove(parent_id)

        after = (parent_id in state.items_deleted, state.new_items.get(parent_id))
        if before != after:
            changed += 1
            log.info(f"[{parent_id}] rectified state: deleted/new {before} -> {after}")

    if changed:
        context.save_state()
    return changed
