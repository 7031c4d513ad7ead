"""Translate between domain record types and Record Service payloads."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from relinker.domain.records import RecordResponse, RecordResult, SublistLine

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from relinker.domain.records import (
        ChildSearchOptions,
        FieldMap,
        IdSearchOption,
        RecordOptions,
        ResponseOptions,
    )

    from .schema import RecordResponsePayload, RecordResultPayload

LINE_INDEX_FIELD = "line"


def _wire_value(value: object) -> object:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _wire_value(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_wire_value(item) for item in value]
    return value


def _wire_fields(fields: FieldMap) -> dict[str, object]:
    return {field_id: _wire_value(value) for field_id, value in fields.items()}


def serialize_id_options(options: Sequence[IdSearchOption]) -> list[dict[str, str]]:
    return [
        {
            "idProp": str(option.id_prop),
            "idValue": option.id_value,
            "searchOperator": str(option.search_operator),
        }
        for option in options
    ]


def serialize_response_options(options: ResponseOptions | None) -> dict[str, object] | None:
    if options is None:
        return None
    return {
        "fields": list(options.fields),
        "sublists": {key: list(values) for key, values in options.sublists.items()},
    }


def serialize_child_options(options: Sequence[ChildSearchOptions]) -> list[dict[str, object]]:
    payload: list[dict[str, object]] = []
    for option in options:
        entry: dict[str, object] = {
            "childRecordType": option.child_record_type,
            "fieldId": option.field_id,
            "sublistId": option.sublist_id,
        }
        response_options = serialize_response_options(option.response_options)
        if response_options is not None:
            entry["responseOptions"] = response_options
        payload.append(entry)
    return payload


def serialize_record_options(record: RecordOptions) -> dict[str, object]:
    sublists: dict[str, object] = {
        sublist_id: [_wire_fields(line) for line in lines]
        for sublist_id, lines in record.sublists.items()
    }
    for sublist_id, updates in record.sublist_updates.items():
        sublists[sublist_id] = {
            field_id: {
                "newValue": _wire_value(update.new_value),
                "lineIdOptions": {
                    "sublistId": update.locator.sublist_id,
                    "fieldId": update.locator.field_id,
                    "value": update.locator.value,
                },
            }
            for field_id, update in updates.items()
        }

    payload: dict[str, object] = {
        "recordType": record.record_type,
        "isDynamic": record.is_dynamic,
        "fields": _wire_fields(record.fields),
        "sublists": sublists,
    }
    if record.id_options:
        payload["idOptions"] = serialize_id_options(record.id_options)
    return payload


def _parse_line(position: int, values: Mapping[str, object]) -> SublistLine:
    raw_index = values.get(LINE_INDEX_FIELD)
    index = int(raw_index) if isinstance(raw_index, int | str) and str(raw_index).isdigit() else position
    return SublistLine(index=index, values=dict(values))  # type: ignore[arg-type]


def parse_record_result(payload: RecordResultPayload) -> RecordResult:
    return RecordResult(
        internal_id=str(payload.internalid),
        record_type=payload.record_type,
        fields=dict(payload.fields),  # type: ignore[arg-type]
        sublists={
            sublist_id: [_parse_line(position, line) for position, line in enumerate(lines)]
            for sublist_id, lines in payload.sublists.items()
        },
    )


def parse_record_response(payload: RecordResponsePayload) -> RecordResponse:
    return RecordResponse(
        results=tuple(parse_record_result(result) for result in payload.results),
        status=payload.status,
        message=payload.message,
        rejects=tuple(payload.rejects),
    )
