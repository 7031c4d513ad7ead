from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from relinker.adapters.filesystem import load_id_list, load_new_records, load_reference_configs
from relinker.domain.records import IdProperty, SearchOperator

if TYPE_CHECKING:
    from pathlib import Path


def test_new_records_are_parsed(tmp_path: Path) -> None:
    path = tmp_path / "new_records.json"
    path.write_text(
        json.dumps(
            [
                {
                    "recordType": "lotnumberedinventoryitem",
                    "fields": {"itemid": "SKU-1", "displayname": "Widget", "cost": 4.25},
                    "sublists": {"price": [{"pricelevel": "1", "price": 9.5}]},
                },
                {
                    "recordType": "lotnumberedinventoryitem",
                    "idOptions": [{"idProp": "internalid", "idValue": "300"}],
                    "fields": {"itemid": "SKU-2"},
                },
            ]
        )
    )

    first, second = load_new_records(path)

    assert first.record_type == "lotnumberedinventoryitem"
    assert first.fields == {"itemid": "SKU-1", "displayname": "Widget", "cost": 4.25}
    assert first.sublists == {"price": [{"pricelevel": "1", "price": 9.5}]}
    assert first.id_options == ()
    [option] = second.id_options
    assert option.id_prop is IdProperty.INTERNAL_ID
    assert option.search_operator is SearchOperator.ANY_OF


def test_new_records_require_record_type(tmp_path: Path) -> None:
    path = tmp_path / "new_records.json"
    path.write_text('[{"fields": {"itemid": "SKU-1"}}]')

    with pytest.raises(ValidationError):
        load_new_records(path)


def test_reference_configs_are_parsed(tmp_path: Path) -> None:
    path = tmp_path / "references.json"
    path.write_text(
        json.dumps(
            {
                "salesorder": {
                    "referenceFieldId": "item",
                    "sublistId": "item",
                    "cacheOptions": {"fields": ["total"], "sublists": {"item": ["quantity"]}},
                    "sublistFields": {"price": "-1"},
                }
            }
        )
    )

    references = load_reference_configs(path)

    reference = references["salesorder"]
    assert reference.reference_field_id == "item"
    assert reference.cache_options.fields == ("total",)
    assert reference.cache_options.sublists == {"item": ("quantity",)}
    assert reference.sublist_fields == {"price": "-1"}
    assert reference.fetch_options().sublists["item"] == ("quantity", "item")


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ('["SKU-1", "SKU-2", 900]', ["SKU-1", "SKU-2", "900"]),
        ("SKU-1\n\n  SKU-2  \n", ["SKU-1", "SKU-2"]),
    ],
)
def test_id_lists_accept_json_or_lines(tmp_path: Path, content: str, expected: list[str]) -> None:
    path = tmp_path / "ids.txt"
    path.write_text(content)

    assert load_id_list(path) == expected
