"""JSON shapes for persisted reconciler files and caller-supplied inputs."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, RootModel, TypeAdapter

type StoredValue = bool | int | float | str | list[int | str] | None
type CreateValue = StoredValue | dict[str, object]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReferenceFieldUpdatePayload(CamelModel):
    record_type: str = Field(alias="recordType")
    sublist_id: str = Field(alias="sublistId")
    reference_field_id: str = Field(alias="referenceFieldId")
    old_reference: str = Field(alias="oldReference")
    validation_dictionary: dict[str, StoredValue] = Field(
        default_factory=dict, alias="validationDictionary"
    )
    line_cache: dict[str, dict[str, StoredValue]] = Field(default_factory=dict, alias="lineCache")


type ChildUpdatesPayload = dict[str, dict[str, list[ReferenceFieldUpdatePayload]]]


class HistoryPayload(RootModel[dict[str, dict[Literal["first", "second"], ChildUpdatesPayload]]]):
    pass


class StatePayload(CamelModel):
    current_stage: str = Field(default="PRE_PROCESS", alias="currentStage")
    first_update: dict[str, dict[str, list[str]]] = Field(default_factory=dict, alias="firstUpdate")
    second_update: dict[str, dict[str, list[str]]] = Field(
        default_factory=dict, alias="secondUpdate"
    )
    items_deleted: list[str] = Field(default_factory=list, alias="itemsDeleted")
    new_items: dict[str, str] = Field(default_factory=dict, alias="newItems")
    errors: list[dict[str, object]] = Field(default_factory=list)


class IdOptionPayload(CamelModel):
    id_prop: str = Field(alias="idProp")
    id_value: str = Field(alias="idValue")


class RecordOptionsPayload(CamelModel):
    """Replacement record definition as written in a ``--new-records`` file."""

    record_type: str = Field(alias="recordType")
    is_dynamic: bool = Field(default=False, alias="isDynamic")
    id_options: list[IdOptionPayload] = Field(default_factory=list, alias="idOptions")
    fields: dict[str, CreateValue] = Field(default_factory=dict)
    sublists: dict[str, list[dict[str, CreateValue]]] = Field(default_factory=dict)


class CacheOptionsPayload(CamelModel):
    fields: list[str] = Field(default_factory=list)
    sublists: dict[str, list[str]] = Field(default_factory=dict)


class ReferenceConfigPayload(CamelModel):
    reference_field_id: str = Field(alias="referenceFieldId")
    sublist_id: str = Field(alias="sublistId")
    cache_options: CacheOptionsPayload = Field(
        default_factory=CacheOptionsPayload, alias="cacheOptions"
    )
    response_options: CacheOptionsPayload = Field(
        default_factory=CacheOptionsPayload, alias="responseOptions"
    )
    sublist_fields: dict[str, StoredValue] = Field(default_factory=dict, alias="sublistFields")


RECORD_OPTIONS_LIST = TypeAdapter(list[RecordOptionsPayload])
REFERENCE_CONFIGS = TypeAdapter(dict[str, ReferenceConfigPayload])
ID_LIST = TypeAdapter(list[int | str])
