"""Discovery of dependent records that reference a parent."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import ChildSearchOptions, IdProperty

from .contracts import DependentDictionary, ReconcilerError, ReconcilerStage

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from relinker.domain.records import RecordOptions

    from .context import ReconcilerContext

log = getLogger(__name__)


def generate_record_dictionary(
    records: Iterable[RecordOptions],
    id_field: str = IdProperty.ITEM_ID,
) -> dict[str, RecordOptions]:
    """Key replacement record definitions by the logical id in ``fields[id_field]``."""
    dictionary: dict[str, RecordOptions] = {}
    for record in records:
        value = record.fields.get(id_field)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Record of type {record.record_type} has no '{id_field}' field")
        if value in dictionary:
            raise ValueError(f"Duplicate record definition for {id_field} '{value}'")
        dictionary[value] = record
    return dictionary


def child_search_options(
    context: ReconcilerContext,
    child_types: Iterable[str] | None = None,
) -> list[ChildSearchOptions]:
    selected = context.references.keys() if child_types is None else child_types
    options: list[ChildSearchOptions] = []
    for child_type in selected:
        reference = context.references[child_type]
        options.append(
            ChildSearchOptions(
                child_record_type=child_type,
                field_id=reference.reference_field_id,
                sublist_id=reference.sublist_id,
            )
        )
    return options


def generate_dependent_dictionary(
    context: ReconcilerContext,
    parent_ids: Sequence[str],
) -> DependentDictionary:
    """Query, per parent and child type, the child records referencing the parent.

    A failing query is recorded and the next child type is tried. A child type
    with no related records ends the lookup for that parent: later child types
    are not queried.
    """
    context.set_stage(ReconcilerStage.GENERATE_DEPENDENT_DICTIONARY)
    dependents: DependentDictionary = {}
    for parent_id in parent_ids:
        dependents[parent_id] = {}
        if parent_id in context.state.items_deleted:
            log.debug(f"[{parent_id}] already deleted, skipping dependent lookup")
            continue

        internal_id = context.resolve_parent_internal_id(parent_id)
        if isinstance(internal_id, ReconcilerError):
            context.record_error(parent_id, internal_id, source="generate_dependent_dictionary")
            continue

        for options in child_search_options(context):
            child_type = options.child_record_type
            try:
                response = context.service.get_related(
                    context.parent_record_type,
                    IdProperty.INTERNAL_ID,
                    internal_id,
                    [options],
                )
            except RecordServiceError as exc:
                log.warning(f"[{parent_id}] dependent query for {child_type} failed: {exc}")
                context.record_error(
                    parent_id,
                    ReconcilerError(
                        source="generate_dependent_dictionary",
                        message=f"Failed to query {child_type} records referencing {parent_id}",
                        error=exc,
                    ),
                    child_record_type=child_type,
                )
                continue

            child_ids = [str(result.internal_id) for result in response]
            if not child_ids:
                log.warning(f"[{parent_id}] no {child_type} records reference this parent")
                break
            dependents[parent_id][child_type] = child_ids

    return dependents


def has_dependent_records(
    context: ReconcilerContext,
    parent_id: str,
    child_options: Sequence[ChildSearchOptions],
) -> bool | ReconcilerError:
    """Live check whether any child record still references the parent."""
    try:
        response = context.service.get_by_id(
            context.parent_record_type, IdProperty.ITEM_ID, parent_id
        )
    except RecordServiceError as exc:
        return ReconcilerError(
            source="has_dependent_records",
            message=f"Failed to look up {context.parent_record_type} '{parent_id}'",
            error=exc,
        )
    parent = response.first()
    if parent is None:
        return ReconcilerError(
            source="has_dependent_records",
            message=f"No {context.parent_record_type} found with itemid '{parent_id}'",
        )

    try:
        related = context.service.get_related(
            context.parent_record_type,
            IdProperty.INTERNAL_ID,
            parent.internal_id,
            child_options,
        )
    except RecordServiceError as exc:
        return ReconcilerError(
            source="has_dependent_records",
            message=f"Failed to query records referencing {parent_id}",
            error=exc,
        )
    if related.results:
        log.info(
            f"[{parent_id}] {len(related.results)} dependent record(s) still reference "
            f"internal id {parent.internal_id}"
        )
    return len(related.results) > 0
