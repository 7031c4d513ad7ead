"""Port for the remote record store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from relinker.domain.records import (
        ChildSearchOptions,
        IdProperty,
        RecordOptions,
        RecordResponse,
        ResponseOptions,
    )


class RecordServiceError(RuntimeError):
    """Raised when a Record Service call fails or returns an error payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class RecordService(Protocol):
    """Get, query-related, upsert and delete operations over logical records."""

    def get_by_id(
        self,
        record_type: str,
        id_property: IdProperty,
        id_value: str,
        response_options: ResponseOptions | None = None,
    ) -> RecordResponse: ...

    def get_related(
        self,
        parent_record_type: str,
        id_property: IdProperty,
        id_value: str,
        child_options: Sequence[ChildSearchOptions],
    ) -> RecordResponse: ...

    def upsert(
        self,
        record: RecordOptions,
        response_options: ResponseOptions | None = None,
    ) -> RecordResponse: ...

    def delete(
        self,
        record_type: str,
        id_property: IdProperty,
        id_value: str,
    ) -> RecordResponse: ...


__all__ = ["RecordService", "RecordServiceError"]
