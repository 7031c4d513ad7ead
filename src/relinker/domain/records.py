"""Logical record shapes exchanged with the Record Service.

Records are composed of typed body fields and ordered sublists (line-item
tables). Values are restricted to a closed set of kinds; payloads are validated
into these types at the adapter boundary so reconciliation code never sees raw
wire data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence


type FieldValue = str | int | float | bool | date | datetime | list[str] | list[int] | None
type NestedRecord = Mapping[str, object]
type FieldMap = dict[str, FieldValue | NestedRecord]


class RecordType(StrEnum):
    """Record types the reconciler knows how to address."""

    INVENTORY_ITEM = "inventoryitem"
    LOT_NUMBERED_INVENTORY_ITEM = "lotnumberedinventoryitem"
    ASSEMBLY_ITEM = "assemblyitem"
    LOT_NUMBERED_ASSEMBLY_ITEM = "lotnumberedassemblyitem"
    NON_INVENTORY_ITEM = "noninventoryitem"
    SERVICE_ITEM = "serviceitem"
    KIT_ITEM = "kititem"
    SALES_ORDER = "salesorder"
    PURCHASE_ORDER = "purchaseorder"
    INVOICE = "invoice"
    ITEM_FULFILLMENT = "itemfulfillment"
    ITEM_RECEIPT = "itemreceipt"
    BOM = "bom"
    BOM_REVISION = "bomrevision"
    CUSTOMER = "customer"
    VENDOR = "vendor"


class IdProperty(StrEnum):
    INTERNAL_ID = "internalid"
    EXTERNAL_ID = "externalid"
    ENTITY_ID = "entityid"
    ITEM_ID = "itemid"
    TRANSACTION_ID = "tranid"


class SearchOperator(StrEnum):
    ANY_OF = "anyof"
    IS = "is"


def is_field_value(value: object) -> bool:
    """Return True when ``value`` belongs to the closed set of scalar field kinds."""
    if value is None or isinstance(value, str | int | float | bool | date):
        return True
    if isinstance(value, list):
        return all(isinstance(item, str | int) and not isinstance(item, bool) for item in value)
    return False


def is_numeric_id(value: object) -> bool:
    return isinstance(value, str | int) and not isinstance(value, bool) and str(value).isdigit()


@dataclass(slots=True, frozen=True)
class IdSearchOption:
    id_prop: IdProperty
    id_value: str
    search_operator: SearchOperator


def id_search(id_prop: IdProperty, id_value: str | int) -> IdSearchOption:
    """Build an id search option with the operator the service expects for ``id_prop``."""
    operator = SearchOperator.ANY_OF if id_prop is IdProperty.INTERNAL_ID else SearchOperator.IS
    return IdSearchOption(id_prop=id_prop, id_value=str(id_value), search_operator=operator)


@dataclass(slots=True, frozen=True, kw_only=True)
class ResponseOptions:
    """Which body fields and sublist fields a response should carry."""

    fields: tuple[str, ...] = ()
    sublists: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def merged(self, other: ResponseOptions) -> ResponseOptions:
        fields = tuple(dict.fromkeys((*self.fields, *other.fields)))
        sublists = {key: tuple(values) for key, values in self.sublists.items()}
        for key, values in other.sublists.items():
            sublists[key] = tuple(dict.fromkeys((*sublists.get(key, ()), *values)))
        return ResponseOptions(fields=fields, sublists=sublists)


@dataclass(slots=True, frozen=True, kw_only=True)
class ChildSearchOptions:
    child_record_type: str
    field_id: str
    sublist_id: str
    response_options: ResponseOptions | None = None


@dataclass(slots=True, frozen=True)
class SublistLine:
    """One line of a sublist: field values plus the line's position."""

    index: int
    values: Mapping[str, FieldValue | NestedRecord]

    def get(self, field_id: str) -> FieldValue | NestedRecord:
        return self.values.get(field_id)

    def __contains__(self, field_id: object) -> bool:
        return field_id in self.values


@dataclass(slots=True, frozen=True, kw_only=True)
class RecordResult:
    internal_id: str
    record_type: str
    fields: FieldMap = field(default_factory=dict)
    sublists: dict[str, list[SublistLine]] = field(default_factory=dict)

    def lines_matching(self, sublist_id: str, field_id: str, values: Sequence[str]) -> list[SublistLine]:
        """Lines of ``sublist_id`` whose ``field_id`` stringifies to one of ``values``."""
        wanted = set(values)
        return [line for line in self.sublists.get(sublist_id, ()) if str(line.get(field_id)) in wanted]


@dataclass(slots=True, frozen=True, kw_only=True)
class RecordResponse:
    results: tuple[RecordResult, ...] = ()
    status: int = 200
    message: str = ""
    rejects: tuple[object, ...] = ()

    def first(self) -> RecordResult | None:
        return self.results[0] if self.results else None

    def __iter__(self) -> Iterator[RecordResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)


@dataclass(slots=True, frozen=True)
class LineLocator:
    """Find a sublist line by the current value of one of its fields."""

    sublist_id: str
    field_id: str
    value: str


@dataclass(slots=True, frozen=True)
class SublistFieldUpdate:
    new_value: FieldValue
    locator: LineLocator


@dataclass(slots=True, frozen=True, kw_only=True)
class RecordOptions:
    """Create-or-update request for one record.

    Records without ``id_options`` are created. ``sublists`` carries whole
    lines for creation while ``sublist_updates`` edits existing lines located
    through a :class:`LineLocator`.
    """

    record_type: str
    id_options: tuple[IdSearchOption, ...] = ()
    is_dynamic: bool = False
    fields: FieldMap = field(default_factory=dict)
    sublists: dict[str, list[FieldMap]] = field(default_factory=dict)
    sublist_updates: dict[str, dict[str, SublistFieldUpdate]] = field(default_factory=dict)
