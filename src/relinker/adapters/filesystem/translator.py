"""Translate persisted and input payloads into domain objects and back."""

from __future__ import annotations

from typing import TYPE_CHECKING

from relinker.domain.reconciliation.contracts import (
    CacheOptions,
    ReconcilerStage,
    ReferenceConfig,
    ReferenceFieldUpdate,
    UpdatePhase,
)
from relinker.domain.reconciliation.state import ReconcilerState
from relinker.domain.records import IdProperty, RecordOptions, ResponseOptions, id_search

from .schema import (
    HistoryPayload,
    RecordOptionsPayload,
    ReferenceConfigPayload,
    ReferenceFieldUpdatePayload,
    StatePayload,
)

if TYPE_CHECKING:
    from relinker.domain.reconciliation.state import DependentUpdateHistory


def update_from_payload(payload: ReferenceFieldUpdatePayload) -> ReferenceFieldUpdate:
    return ReferenceFieldUpdate(
        record_type=payload.record_type,
        sublist_id=payload.sublist_id,
        reference_field_id=payload.reference_field_id,
        old_reference=payload.old_reference,
        validation_dictionary=dict(payload.validation_dictionary),
        line_cache={key: dict(values) for key, values in payload.line_cache.items()},
    )


def update_to_payload(update: ReferenceFieldUpdate) -> ReferenceFieldUpdatePayload:
    return ReferenceFieldUpdatePayload(
        record_type=update.record_type,
        sublist_id=update.sublist_id,
        reference_field_id=update.reference_field_id,
        old_reference=update.old_reference,
        validation_dictionary=dict(update.validation_dictionary),  # type: ignore[arg-type]
        line_cache={key: dict(values) for key, values in update.line_cache.items()},  # type: ignore[arg-type]
    )


def history_from_payload(payload: HistoryPayload) -> DependentUpdateHistory:
    history: DependentUpdateHistory = {}
    for parent_id, phases in payload.root.items():
        entry = history.setdefault(parent_id, {UpdatePhase.FIRST: {}, UpdatePhase.SECOND: {}})
        for phase, child_types in phases.items():
            entry[UpdatePhase(phase)] = {
                child_type: {
                    child_id: [update_from_payload(update) for update in updates]
                    for child_id, updates in children.items()
                }
                for child_type, children in child_types.items()
            }
    return history


def history_to_payload(history: DependentUpdateHistory) -> HistoryPayload:
    return HistoryPayload(
        {
            parent_id: {
                str(phase): {  # type: ignore[misc]
                    child_type: {
                        child_id: [update_to_payload(update) for update in updates]
                        for child_id, updates in children.items()
                    }
                    for child_type, children in child_types.items()
                }
                for phase, child_types in phases.items()
            }
            for parent_id, phases in history.items()
        }
    )


def state_from_payload(payload: StatePayload) -> ReconcilerState:
    return ReconcilerState(
        current_stage=ReconcilerStage(payload.current_stage),
        first_update={key: dict(value) for key, value in payload.first_update.items()},
        second_update={key: dict(value) for key, value in payload.second_update.items()},
        items_deleted=list(payload.items_deleted),
        new_items=dict(payload.new_items),
        errors=list(payload.errors),
    )


def state_to_payload(state: ReconcilerState) -> StatePayload:
    return StatePayload(
        current_stage=str(state.current_stage),
        first_update=state.first_update,
        second_update=state.second_update,
        items_deleted=state.items_deleted,
        new_items=state.new_items,
        errors=state.errors,
    )


def record_options_from_payload(payload: RecordOptionsPayload) -> RecordOptions:
    return RecordOptions(
        record_type=payload.record_type,
        is_dynamic=payload.is_dynamic,
        id_options=tuple(
            id_search(IdProperty(option.id_prop), option.id_value) for option in payload.id_options
        ),
        fields=dict(payload.fields),  # type: ignore[arg-type]
        sublists={key: [dict(line) for line in lines] for key, lines in payload.sublists.items()},  # type: ignore[misc]
    )


def reference_config_from_payload(payload: ReferenceConfigPayload) -> ReferenceConfig:
    return ReferenceConfig(
        reference_field_id=payload.reference_field_id,
        sublist_id=payload.sublist_id,
        cache_options=CacheOptions(
            fields=tuple(payload.cache_options.fields),
            sublists={key: tuple(values) for key, values in payload.cache_options.sublists.items()},
        ),
        response_options=ResponseOptions(
            fields=tuple(payload.response_options.fields),
            sublists={
                key: tuple(values) for key, values in payload.response_options.sublists.items()
            },
        ),
        sublist_fields=dict(payload.sublist_fields),
    )
