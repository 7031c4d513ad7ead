"""Apply substitution plans to dependent records and verify the result."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import (
    IdProperty,
    LineLocator,
    RecordOptions,
    SublistFieldUpdate,
    id_search,
)

from .contracts import ReconcilerError

if TYPE_CHECKING:
    from relinker.domain.ports.record_service import RecordService
    from relinker.domain.records import FieldValue, RecordResult

    from .contracts import ReferenceConfig, ReferenceFieldUpdate

log = getLogger(__name__)


def _fetch_child(
    service: RecordService,
    child_record_type: str,
    child_internal_id: str,
    reference: ReferenceConfig,
    *,
    source: str,
) -> RecordResult | ReconcilerError:
    try:
        response = service.get_by_id(
            child_record_type,
            IdProperty.INTERNAL_ID,
            child_internal_id,
            reference.fetch_options(),
        )
    except RecordServiceError as exc:
        return ReconcilerError(
            source=source,
            message=f"Failed to fetch {child_record_type} {child_internal_id}",
            error=exc,
        )
    child = response.first()
    if child is None:
        return ReconcilerError(
            source=source,
            message=f"{child_record_type} {child_internal_id} not found",
        )
    if reference.sublist_id not in child.sublists:
        return ReconcilerError(
            source=source,
            message=f"{child_record_type} {child_internal_id} has no '{reference.sublist_id}' sublist",
        )
    return child


def build_substitution(
    child_internal_id: str,
    update: ReferenceFieldUpdate,
    reference: ReferenceConfig,
    new_reference: str,
    cached_fields: dict[str, FieldValue],
) -> RecordOptions:
    """Upsert that repoints the first line still holding ``update.old_reference``."""
    locator = LineLocator(
        sublist_id=update.sublist_id,
        field_id=update.reference_field_id,
        value=update.old_reference,
    )
    line_fields: dict[str, SublistFieldUpdate] = {
        update.reference_field_id: SublistFieldUpdate(new_value=new_reference, locator=locator),
    }
    for field_id, value in reference.sublist_fields.items():
        line_fields[field_id] = SublistFieldUpdate(new_value=value, locator=locator)
    for field_id, value in cached_fields.items():
        if field_id == update.reference_field_id:
            continue
        line_fields[field_id] = SublistFieldUpdate(new_value=value, locator=locator)

    return RecordOptions(
        record_type=update.record_type,
        id_options=(id_search(IdProperty.INTERNAL_ID, child_internal_id),),
        sublist_updates={update.sublist_id: line_fields},
    )


def process_reference_update(
    service: RecordService,
    *,
    parent_id: str,
    child_record_type: str,
    child_internal_id: str,
    update: ReferenceFieldUpdate,
    reference: ReferenceConfig,
    is_second_update: bool = False,
    applied: list[str] | None = None,
) -> None | ReconcilerError:
    """Apply ``update`` to the live child record.

    Returns ``None`` on success, including when no line holds the old
    reference anymore because a previous run already applied the plan.
    Substitutions are issued one upsert at a time: each locates its line by the
    old value, which would be ambiguous in a batched request.
    Each new reference whose upsert succeeded is appended to ``applied``, so a
    caller can record the lines already moved when a later upsert fails.
    """
    source = "process_reference_update"
    if child_record_type != update.record_type:
        return ReconcilerError(
            source=source,
            message=(
                f"Update is for {update.record_type} but was applied to {child_record_type}"
            ),
        )

    child = _fetch_child(service, child_record_type, child_internal_id, reference, source=source)
    if isinstance(child, ReconcilerError):
        return child

    target_lines = child.lines_matching(
        update.sublist_id, update.reference_field_id, [update.old_reference]
    )
    if not target_lines:
        log.warning(
            f"[{parent_id}] {child_record_type} {child_internal_id}: no lines reference "
            f"{update.old_reference}, nothing to update"
        )
        return None

    if len(target_lines) != len(update.line_cache):
        return ReconcilerError(
            source=source,
            message=(
                f"{child_record_type} {child_internal_id} has {len(target_lines)} lines "
                f"referencing {update.old_reference}, expected {len(update.line_cache)}"
            ),
            details=([line.index for line in target_lines],),
        )

    for new_reference, cached_fields in update.line_cache.items():
        record = build_substitution(
            child_internal_id, update, reference, new_reference, cached_fields
        )
        try:
            response = service.upsert(record)
        except RecordServiceError as exc:
            return ReconcilerError(
                source=source,
                message=(
                    f"Failed to repoint {child_record_type} {child_internal_id} "
                    f"from {update.old_reference} to {new_reference}"
                ),
                error=exc,
            )
        if not response.results:
            return ReconcilerError(
                source=source,
                message="Not all updates processed",
                details=(child_record_type, child_internal_id, new_reference, response.message),
            )
        log.debug(
            f"[{parent_id}] {child_record_type} {child_internal_id}: "
            f"{update.old_reference} -> {new_reference}"
        )
        if applied is not None:
            applied.append(new_reference)

    if is_second_update:
        return compare_cache_data(
            service,
            child_record_type=child_record_type,
            child_internal_id=child_internal_id,
            update=update,
            reference=reference,
        )
    return None


def compare_cache_data(
    service: RecordService,
    *,
    child_record_type: str,
    child_internal_id: str,
    update: ReferenceFieldUpdate,
    reference: ReferenceConfig,
) -> None | ReconcilerError:
    """Verify a repointed child against the snapshot taken before phase one.

    Body fields must compare equal as strings, no line may still hold the old
    reference and every new reference must be present on at least as many
    lines as it was written to.
    """
    source = "compare_cache_data"
    child = _fetch_child(service, child_record_type, child_internal_id, reference, source=source)
    if isinstance(child, ReconcilerError):
        return child

    mismatched = {
        field_id: (expected, child.fields.get(field_id))
        for field_id, expected in update.validation_dictionary.items()
        if str(child.fields.get(field_id)) != str(expected)
    }
    if mismatched:
        return ReconcilerError(
            source=source,
            message=f"{child_record_type} {child_internal_id} body fields changed",
            details=(mismatched,),
        )

    remaining = child.lines_matching(
        update.sublist_id, update.reference_field_id, [update.old_reference]
    )
    if remaining:
        return ReconcilerError(
            source=source,
            message=(
                f"{child_record_type} {child_internal_id} still references "
                f"{update.old_reference} on {len(remaining)} line(s)"
            ),
        )

    repointed = child.lines_matching(
        update.sublist_id, update.reference_field_id, list(update.line_cache)
    )
    if len(repointed) < len(update.line_cache):
        return ReconcilerError(
            source=source,
            message=(
                f"{child_record_type} {child_internal_id} has {len(repointed)} line(s) "
                f"referencing {sorted(update.line_cache)}, expected {len(update.line_cache)}"
            ),
        )
    return None
