"""Record Service response schemas."""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

type WireValue = bool | int | float | str | list[int | str] | dict[str, object] | None


class RecordServiceBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "Record Service %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class RecordResultPayload(RecordServiceBaseModel):
    internalid: int | str
    record_type: str = Field(default="", alias="recordType")
    fields: dict[str, WireValue] = Field(default_factory=dict)
    sublists: dict[str, list[dict[str, WireValue]]] = Field(default_factory=dict)


class RecordResponsePayload(RecordServiceBaseModel):
    status: int = 200
    message: str = ""
    error: str | None = None
    results: list[RecordResultPayload] = Field(default_factory=list)
    rejects: list[object] = Field(default_factory=list)
    log_array: list[object] = Field(default_factory=list, alias="logArray")
