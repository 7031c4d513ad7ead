"""Placeholder substitution plans for one dependent record."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import IdProperty, RecordType, is_field_value, is_numeric_id

from .contracts import ReconcilerError, ReferenceFieldUpdate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from relinker.domain.ports.record_service import RecordService
    from relinker.domain.records import FieldValue, RecordResult

    from .contracts import ReferenceConfig

log = getLogger(__name__)

_SOURCE = "generate_placeholder_update"


def _invalid_parameters(**arguments: object) -> str | None:
    problems: list[str] = []
    for name in ("parent_id", "old_reference_id", "reference_field_id", "sublist_id"):
        value = arguments[name]
        if not isinstance(value, str) or not value.strip():
            problems.append(f"{name} must be a non-empty string")
    for name in ("parent_record_type", "child_record_type"):
        if arguments[name] not in set(RecordType):
            problems.append(f"{name} {arguments[name]!r} is not a known record type")
    if not is_numeric_id(arguments["child_internal_id"]):
        problems.append("child_internal_id must be numeric")
    placeholders = arguments["placeholder_ids"]
    if not placeholders or not all(is_numeric_id(value) for value in placeholders):  # type: ignore[union-attr]
        problems.append("placeholder_ids must be a non-empty list of numeric ids")
    return "; ".join(problems) or None


def generate_placeholder_update(
    service: RecordService,
    *,
    parent_id: str,
    old_reference_id: str,
    parent_record_type: str,
    child_record_type: str,
    child_internal_id: str,
    reference: ReferenceConfig,
    placeholder_ids: Sequence[str],
) -> ReferenceFieldUpdate | ReconcilerError:
    """Plan moving every line of one child that references ``old_reference_id`` to a placeholder.

    Every target line gets its own placeholder; placeholders already referenced
    elsewhere in the child's sublist are skipped, and a child with more target
    lines than usable placeholders is refused rather than sharing one. The
    child's ``cache_options`` body fields and the target lines' cached sublist
    fields are captured so the second phase can restore and verify them.
    """
    problem = _invalid_parameters(
        parent_id=parent_id,
        old_reference_id=old_reference_id,
        reference_field_id=reference.reference_field_id,
        sublist_id=reference.sublist_id,
        parent_record_type=parent_record_type,
        child_record_type=child_record_type,
        child_internal_id=child_internal_id,
        placeholder_ids=placeholder_ids,
    )
    if problem:
        return ReconcilerError(
            source=_SOURCE,
            message="Invalid parameters",
            error=problem,
            details=(child_record_type, child_internal_id),
        )

    sublist_id = reference.sublist_id
    reference_field_id = reference.reference_field_id
    try:
        response = service.get_by_id(
            child_record_type,
            IdProperty.INTERNAL_ID,
            str(child_internal_id),
            reference.fetch_options(),
        )
    except RecordServiceError as exc:
        return ReconcilerError(
            source=_SOURCE,
            message=f"Failed to fetch {child_record_type} {child_internal_id}",
            error=exc,
        )
    child = response.first()
    if child is None or sublist_id not in child.sublists:
        return ReconcilerError(
            source=_SOURCE,
            message=f"{child_record_type} {child_internal_id} has no '{sublist_id}' sublist",
            details=(child_record_type, child_internal_id),
        )

    validation = _snapshot_body_fields(child, reference.cache_options.fields)
    if isinstance(validation, ReconcilerError):
        return validation

    target_lines = child.lines_matching(sublist_id, reference_field_id, [str(old_reference_id)])
    existing_references = {str(line.get(reference_field_id)) for line in child.sublists[sublist_id]}
    placeholders = [
        str(value) for value in placeholder_ids if str(value) not in existing_references
    ][: len(target_lines)]
    # one distinct placeholder per line keeps line_cache keys aligned with the target lines
    if len(target_lines) > len(placeholders):
        return ReconcilerError(
            source=_SOURCE,
            message=(
                f"{child_record_type} {child_internal_id} has {len(target_lines)} lines "
                f"referencing {old_reference_id} but only {len(placeholders)} usable placeholder(s)"
            ),
            details=(list(placeholder_ids), sorted(existing_references)),
        )

    cached_fields = reference.cache_options.sublists.get(sublist_id, ())
    line_cache: dict[str, dict[str, FieldValue]] = {}
    for placeholder, line in zip(placeholders, target_lines, strict=False):
        line_cache[placeholder] = {
            field_id: line.get(field_id)  # type: ignore[misc]
            for field_id in cached_fields
            if field_id in line and is_field_value(line.get(field_id))
        }

    if not target_lines:
        log.debug(
            f"[{parent_id}] {child_record_type} {child_internal_id} has no lines "
            f"referencing {old_reference_id}"
        )

    return ReferenceFieldUpdate(
        record_type=child_record_type,
        sublist_id=sublist_id,
        reference_field_id=reference_field_id,
        old_reference=str(old_reference_id),
        validation_dictionary=validation,
        line_cache=line_cache,
    )


def _snapshot_body_fields(
    child: RecordResult,
    field_ids: Sequence[str],
) -> dict[str, FieldValue] | ReconcilerError:
    snapshot: dict[str, FieldValue] = {}
    for field_id in field_ids:
        if field_id not in child.fields:
            return ReconcilerError(
                source=_SOURCE,
                message=f"Cache field '{field_id}' missing from {child.record_type} {child.internal_id}",
            )
        value = child.fields[field_id]
        if not is_field_value(value):
            return ReconcilerError(
                source=_SOURCE,
                message=f"Cache field '{field_id}' on {child.record_type} is not a scalar value",
            )
        snapshot[field_id] = value  # type: ignore[assignment]
    return snapshot
