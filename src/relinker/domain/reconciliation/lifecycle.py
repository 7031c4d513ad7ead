"""Deletion of the obsolete parent and creation of its replacement."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import IdProperty, is_numeric_id

from .contracts import ReconcilerError, ReconcilerStage
from .dependents import child_search_options, has_dependent_records

if TYPE_CHECKING:
    from .context import ReconcilerContext

log = getLogger(__name__)


def handle_delete(
    context: ReconcilerContext,
    parent_id: str,
    *,
    verify_only: bool = False,
) -> None | ReconcilerError:
    """Delete the parent once a live query confirms nothing references it.

    Every configured child type is checked, not only those found when the
    dependent dictionary was built. ``verify_only`` stops after the check.
    """
    if parent_id in context.state.items_deleted:
        log.info(f"[{parent_id}] already deleted")
        return None

    context.set_stage(ReconcilerStage.VALIDATE_FIRST_UPDATE)
    has_dependents = has_dependent_records(context, parent_id, child_search_options(context))
    if isinstance(has_dependents, ReconcilerError):
        return has_dependents
    if has_dependents:
        return ReconcilerError(
            source="handle_delete",
            message=f"safeToDelete false: records still reference {parent_id}",
        )
    if verify_only:
        return None

    context.set_stage(ReconcilerStage.DELETE_OLD_ITEM)
    try:
        response = context.service.delete(
            context.parent_record_type, IdProperty.ITEM_ID, parent_id
        )
    except RecordServiceError as exc:
        return ReconcilerError(
            source="handle_delete",
            message=f"Failed to delete {context.parent_record_type} '{parent_id}'",
            error=exc,
        )
    if not response.results:
        return ReconcilerError(
            source="handle_delete",
            message=f"Delete of {context.parent_record_type} '{parent_id}' returned no result",
            details=(response.message,),
        )

    context.state.mark_deleted(parent_id)
    context.parent_internal_ids.pop(parent_id, None)
    context.save_state()
    log.info(f"[{parent_id}] deleted {context.parent_record_type}")
    return None


def handle_create(context: ReconcilerContext, parent_id: str) -> str | ReconcilerError:
    """Create the replacement parent, at most once per parent id per state file."""
    existing = context.state.new_items.get(parent_id)
    if existing is not None:
        log.info(f"[{parent_id}] replacement already created as {existing}")
        return existing

    context.set_stage(ReconcilerStage.CREATE_NEW_ITEM)
    record = context.create_options.get(parent_id)
    if record is None:
        return ReconcilerError(
            source="handle_create",
            message=f"No replacement record definition for '{parent_id}'",
        )
    try:
        response = context.service.upsert(record)
    except RecordServiceError as exc:
        return ReconcilerError(
            source="handle_create",
            message=f"Failed to create replacement for '{parent_id}'",
            error=exc,
        )
    created = response.first()
    if created is None or not is_numeric_id(created.internal_id):
        return ReconcilerError(
            source="handle_create",
            message=f"Create of '{parent_id}' returned no usable internal id",
            details=(created.internal_id if created else None, response.message),
        )

    new_id = str(created.internal_id)
    context.state.new_items[parent_id] = new_id
    context.parent_internal_ids[parent_id] = new_id
    context.save_state()
    log.info(f"[{parent_id}] created replacement {context.parent_record_type} {new_id}")
    return new_id
