"""Built-in reference configurations for common dependent record types."""

from __future__ import annotations

from types import MappingProxyType

from relinker.domain.reconciliation.contracts import CacheOptions, ReferenceConfig
from relinker.domain.records import RecordType, ResponseOptions

SALES_ORDER_REFERENCE = ReferenceConfig(
    reference_field_id="item",
    sublist_id="item",
    cache_options=CacheOptions(
        fields=("total", "tranid", "externalid"),
        sublists={"item": ("quantity", "rate", "amount")},
    ),
    response_options=ResponseOptions(
        fields=("externalid", "tranid", "amount", "total"),
        sublists={"item": ("id", "item", "quantity", "rate", "amount")},
    ),
)

BOM_REVISION_REFERENCE = ReferenceConfig(
    reference_field_id="item",
    sublist_id="component",
    cache_options=CacheOptions(
        fields=("name",),
        sublists={"component": ("quantity", "bomquantity")},
    ),
    response_options=ResponseOptions(
        fields=("externalid", "billofmaterial", "name"),
        sublists={"component": ("id", "item", "quantity", "bomquantity")},
    ),
)

DEFAULT_REFERENCE_OPTIONS = MappingProxyType(
    {
        RecordType.SALES_ORDER.value: SALES_ORDER_REFERENCE,
        RecordType.BOM_REVISION.value: BOM_REVISION_REFERENCE,
    }
)
