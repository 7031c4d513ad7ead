"""In-memory Record Service used by reconciliation tests."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import (
    IdProperty,
    RecordResponse,
    RecordResult,
    SublistLine,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from relinker.domain.records import (
        ChildSearchOptions,
        RecordOptions,
        ResponseOptions,
        SublistFieldUpdate,
    )

type StoredRecord = dict[str, dict[str, object]]


@dataclass
class FakeRecordService:
    """Stores records as ``{"fields": {...}, "sublists": {id: [line, ...]}}``."""

    records: dict[tuple[str, str], StoredRecord] = field(default_factory=dict)
    next_internal_id: int = 200
    calls: list[tuple[str, str, str]] = field(default_factory=list)
    failures: dict[tuple[str, str], RecordServiceError] = field(default_factory=dict)
    passes_before_failure: dict[tuple[str, str], int] = field(default_factory=dict)
    mutations: int = 0

    def add(
        self,
        record_type: str,
        internal_id: str,
        *,
        fields: dict[str, object] | None = None,
        sublists: dict[str, list[dict[str, object]]] | None = None,
    ) -> None:
        self.records[(record_type, internal_id)] = {
            "fields": dict(fields or {}),
            "sublists": copy.deepcopy(sublists or {}),
        }

    def fail(self, method: str, id_value: str, message: str = "boom", *, after: int = 0) -> None:
        """Raise on calls to ``method`` for ``id_value`` once ``after`` calls have succeeded."""
        self.failures[(method, id_value)] = RecordServiceError(message, status_code=500)
        self.passes_before_failure[(method, id_value)] = after

    def lines(self, record_type: str, internal_id: str, sublist_id: str) -> list[dict[str, object]]:
        return self.records[(record_type, internal_id)]["sublists"][sublist_id]  # type: ignore[return-value]

    def references(
        self, record_type: str, internal_id: str, sublist_id: str = "item", field_id: str = "item"
    ) -> list[str]:
        return [str(line.get(field_id)) for line in self.lines(record_type, internal_id, sublist_id)]

    # RecordService

    def get_by_id(
        self,
        record_type: str,
        id_property: IdProperty,
        id_value: str,
        response_options: ResponseOptions | None = None,  # noqa: ARG002
    ) -> RecordResponse:
        self._record_call("get_by_id", record_type, id_value)
        found = self._find(record_type, id_property, id_value)
        return RecordResponse(results=(found,) if found else ())

    def get_related(
        self,
        parent_record_type: str,  # noqa: ARG002
        id_property: IdProperty,  # noqa: ARG002
        id_value: str,
        child_options: Sequence[ChildSearchOptions],
    ) -> RecordResponse:
        self._record_call("get_related", parent_record_type, id_value)
        results: list[RecordResult] = []
        for option in child_options:
            for (record_type, internal_id), stored in self.records.items():
                if record_type != option.child_record_type:
                    continue
                lines = stored["sublists"].get(option.sublist_id, [])
                if any(str(line.get(option.field_id)) == str(id_value) for line in lines):  # type: ignore[union-attr]
                    results.append(self._result(record_type, internal_id))
        return RecordResponse(results=tuple(results))

    def upsert(
        self,
        record: RecordOptions,
        response_options: ResponseOptions | None = None,  # noqa: ARG002
    ) -> RecordResponse:
        if not record.id_options:
            internal_id = str(self.next_internal_id)
            self._record_call("upsert", record.record_type, internal_id)
            self.next_internal_id += 1
            self.add(
                record.record_type,
                internal_id,
                fields=dict(record.fields),
                sublists={key: [dict(line) for line in lines] for key, lines in record.sublists.items()},
            )
            self.mutations += 1
            return RecordResponse(results=(self._result(record.record_type, internal_id),))

        internal_id = record.id_options[0].id_value
        self._record_call("upsert", record.record_type, internal_id)
        stored = self.records.get((record.record_type, internal_id))
        if stored is None:
            return RecordResponse(message="record not found")
        stored["fields"].update(record.fields)
        for sublist_id, updates in record.sublist_updates.items():
            if not self._apply_line_updates(stored, sublist_id, updates):
                return RecordResponse(message="no line matched")
        self.mutations += 1
        return RecordResponse(results=(self._result(record.record_type, internal_id),))

    def delete(
        self,
        record_type: str,
        id_property: IdProperty,
        id_value: str,
    ) -> RecordResponse:
        self._record_call("delete", record_type, id_value)
        found = self._find(record_type, id_property, id_value)
        if found is None:
            return RecordResponse()
        del self.records[(record_type, found.internal_id)]
        self.mutations += 1
        return RecordResponse(results=(found,))

    # helpers

    def _record_call(self, method: str, record_type: str, id_value: str) -> None:
        self.calls.append((method, record_type, id_value))
        failure = self.failures.get((method, id_value))
        if failure is None:
            return
        remaining = self.passes_before_failure.get((method, id_value), 0)
        if remaining > 0:
            self.passes_before_failure[(method, id_value)] = remaining - 1
            return
        raise failure

    def _find(self, record_type: str, id_property: IdProperty, id_value: str) -> RecordResult | None:
        for (stored_type, internal_id), stored in self.records.items():
            if stored_type != record_type:
                continue
            if id_property is IdProperty.INTERNAL_ID:
                matches = internal_id == str(id_value)
            else:
                matches = str(stored["fields"].get(id_property)) == str(id_value)
            if matches:
                return self._result(stored_type, internal_id)
        return None

    def _result(self, record_type: str, internal_id: str) -> RecordResult:
        stored = copy.deepcopy(self.records[(record_type, internal_id)])
        return RecordResult(
            internal_id=internal_id,
            record_type=record_type,
            fields=stored["fields"],  # type: ignore[arg-type]
            sublists={
                sublist_id: [SublistLine(index=index, values=line) for index, line in enumerate(lines)]  # type: ignore[arg-type]
                for sublist_id, lines in stored["sublists"].items()
            },
        )

    @staticmethod
    def _apply_line_updates(
        stored: StoredRecord,
        sublist_id: str,
        updates: dict[str, SublistFieldUpdate],
    ) -> bool:
        lines: list[dict[str, object]] = stored["sublists"].get(sublist_id, [])  # type: ignore[assignment]
        by_locator: dict[tuple[str, str], dict[str, object]] = {}
        for field_id, update in updates.items():
            key = (update.locator.field_id, update.locator.value)
            by_locator.setdefault(key, {})[field_id] = update.new_value
        for (locator_field, locator_value), values in by_locator.items():
            line = next(
                (line for line in lines if str(line.get(locator_field)) == locator_value), None
            )
            if line is None:
                return False
            line.update(values)
        return True
