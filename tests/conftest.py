from __future__ import annotations

from datetime import UTC, datetime

import pytest

from relinker.domain.reconciliation import (
    CacheOptions,
    ReconcilerContext,
    ReconcilerState,
    ReferenceConfig,
)
from relinker.domain.records import RecordOptions, RecordType, ResponseOptions
from tests.support.record_service import FakeRecordService
from tests.support.store import MemoryReconcilerStore

PARENT_TYPE = RecordType.INVENTORY_ITEM.value
CHILD_TYPE = RecordType.SALES_ORDER.value
FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def sales_order_reference() -> ReferenceConfig:
    return ReferenceConfig(
        reference_field_id="item",
        sublist_id="item",
        cache_options=CacheOptions(
            fields=("total", "tranid"),
            sublists={"item": ("quantity", "rate")},
        ),
        response_options=ResponseOptions(
            fields=("tranid", "total"),
            sublists={"item": ("item", "quantity", "rate", "amount")},
        ),
    )


@pytest.fixture
def record_service() -> FakeRecordService:
    """Parent SKU-1 (internal id 100) referenced by SO-A line 0 and SO-B line 2."""
    service = FakeRecordService()
    service.add(PARENT_TYPE, "100", fields={"itemid": "SKU-1", "displayname": "Widget"})
    service.add(
        CHILD_TYPE,
        "5001",
        fields={"tranid": "SO-A", "total": 20.0},
        sublists={
            "item": [
                {"item": "100", "quantity": 2, "rate": 10.0, "amount": 20.0},
                {"item": "300", "quantity": 1, "rate": 0.0, "amount": 0.0},
            ]
        },
    )
    service.add(
        CHILD_TYPE,
        "5002",
        fields={"tranid": "SO-B", "total": 15.0},
        sublists={
            "item": [
                {"item": "301", "quantity": 1, "rate": 5.0, "amount": 5.0},
                {"item": "302", "quantity": 1, "rate": 5.0, "amount": 5.0},
                {"item": "100", "quantity": 1, "rate": 5.0, "amount": 5.0},
            ]
        },
    )
    return service


@pytest.fixture
def new_records() -> list[RecordOptions]:
    return [
        RecordOptions(
            record_type=PARENT_TYPE,
            fields={"itemid": "SKU-1", "displayname": "Widget (lot tracked)"},
        )
    ]


@pytest.fixture
def memory_store() -> MemoryReconcilerStore:
    return MemoryReconcilerStore()


@pytest.fixture
def reconciler_context(
    record_service: FakeRecordService,
    memory_store: MemoryReconcilerStore,
    sales_order_reference: ReferenceConfig,
    new_records: list[RecordOptions],
) -> ReconcilerContext:
    return ReconcilerContext(
        service=record_service,
        store=memory_store,
        parent_record_type=PARENT_TYPE,
        references={CHILD_TYPE: sales_order_reference},
        state=ReconcilerState(),
        history={},
        create_options={"SKU-1": new_records[0]},
        clock=lambda: FIXED_NOW,
    )
