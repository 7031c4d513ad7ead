from __future__ import annotations

import pytest

from relinker.domain.reconciliation import (
    ReconcilerError,
    ReferenceConfig,
    ReferenceFieldUpdate,
    generate_placeholder_update,
)
from tests.conftest import CHILD_TYPE, PARENT_TYPE
from tests.support.record_service import FakeRecordService


def _generate(
    service: FakeRecordService,
    reference: ReferenceConfig,
    *,
    child_id: str = "5001",
    placeholders: list[str] | None = None,
    old_reference: str = "100",
) -> ReferenceFieldUpdate | ReconcilerError:
    return generate_placeholder_update(
        service,
        parent_id="SKU-1",
        old_reference_id=old_reference,
        parent_record_type=PARENT_TYPE,
        child_record_type=CHILD_TYPE,
        child_internal_id=child_id,
        reference=reference,
        placeholder_ids=placeholders if placeholders is not None else ["900", "901"],
    )


def test_snapshots_body_and_line_fields(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    update = _generate(record_service, sales_order_reference)

    assert isinstance(update, ReferenceFieldUpdate)
    assert update.record_type == CHILD_TYPE
    assert update.old_reference == "100"
    assert update.validation_dictionary == {"total": 20.0, "tranid": "SO-A"}
    assert update.line_cache == {"900": {"quantity": 2, "rate": 10.0}}


def test_line_cache_has_one_entry_per_target_line(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    record_service.add(
        CHILD_TYPE,
        "5003",
        fields={"tranid": "SO-C", "total": 3.0},
        sublists={
            "item": [
                {"item": "100", "quantity": 1, "rate": 1.0},
                {"item": "100", "quantity": 2, "rate": 1.0},
            ]
        },
    )

    update = _generate(record_service, sales_order_reference, child_id="5003")

    assert isinstance(update, ReferenceFieldUpdate)
    assert update.line_cache == {
        "900": {"quantity": 1, "rate": 1.0},
        "901": {"quantity": 2, "rate": 1.0},
    }


def test_skips_placeholders_already_on_the_child(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    record_service.lines(CHILD_TYPE, "5001", "item")[1]["item"] = "900"

    update = _generate(record_service, sales_order_reference)

    assert isinstance(update, ReferenceFieldUpdate)
    assert list(update.line_cache) == ["901"]


def test_one_placeholder_is_never_shared_by_several_lines(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    """Two lines and a single placeholder: the plan is refused rather than reusing it."""
    record_service.add(
        CHILD_TYPE,
        "5003",
        fields={"tranid": "SO-C", "total": 3.0},
        sublists={"item": [{"item": "100"}, {"item": "100"}]},
    )

    result = _generate(record_service, sales_order_reference, child_id="5003", placeholders=["900"])

    assert isinstance(result, ReconcilerError)
    assert "usable placeholder" in result.message


def test_no_target_lines_yields_empty_plan(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    update = _generate(record_service, sales_order_reference, old_reference="999")

    assert isinstance(update, ReferenceFieldUpdate)
    assert update.line_cache == {}


@pytest.mark.parametrize(
    ("child_id", "placeholders"),
    [("SO-A", ["900"]), ("5001", []), ("5001", ["nine hundred"])],
)
def test_rejects_malformed_arguments(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
    child_id: str,
    placeholders: list[str],
) -> None:
    result = _generate(
        record_service, sales_order_reference, child_id=child_id, placeholders=placeholders
    )

    assert isinstance(result, ReconcilerError)
    assert result.message == "Invalid parameters"
    assert record_service.calls == []


def test_missing_cache_field_is_an_error(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    del record_service.records[(CHILD_TYPE, "5001")]["fields"]["total"]

    result = _generate(record_service, sales_order_reference)

    assert isinstance(result, ReconcilerError)
    assert "'total'" in result.message


def test_missing_sublist_is_an_error(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    record_service.add(CHILD_TYPE, "5004", fields={"tranid": "SO-D", "total": 0})

    result = _generate(record_service, sales_order_reference, child_id="5004")

    assert isinstance(result, ReconcilerError)
    assert "sublist" in result.message


def test_fetch_failure_is_returned_as_error(
    record_service: FakeRecordService,
    sales_order_reference: ReferenceConfig,
) -> None:
    record_service.fail("get_by_id", "5001")

    result = _generate(record_service, sales_order_reference)

    assert isinstance(result, ReconcilerError)
    assert result.source == "generate_placeholder_update"
