from __future__ import annotations

import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from relinker.adapters.http_resilience import ResilientClient
from relinker.adapters.record_service import RecordServiceClient
from relinker.config.http_resilience import ResilienceConfig
from relinker.config.record_service import DEFAULT_DEPLOYMENTS, RecordServiceConfig
from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import (
    ChildSearchOptions,
    IdProperty,
    LineLocator,
    RecordOptions,
    SublistFieldUpdate,
    id_search,
)

BASE_URL = "https://records.example.test/app/site/restlet"


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL, transport=httpx.MockTransport(async_handler)
        )
        return client

    return factory


def _config(request_delay_seconds: float = 0.0) -> RecordServiceConfig:
    return RecordServiceConfig(
        resilience=ResilienceConfig(name="record_service", base_url=BASE_URL),
        deployments=dict(DEFAULT_DEPLOYMENTS),
        request_delay_seconds=request_delay_seconds,
    )


def _ok(results: list[dict[str, object]]) -> httpx.Response:
    return httpx.Response(200, json={"status": 200, "message": "ok", "results": results})


def test_get_by_id_sends_script_and_json_options() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return _ok(
            [
                {
                    "internalid": 5001,
                    "recordType": "salesorder",
                    "fields": {"tranid": "SO-A", "total": 20.0},
                    "sublists": {
                        "item": [
                            {"line": "4", "item": "100", "quantity": 2},
                            {"item": "300", "quantity": 1},
                        ]
                    },
                }
            ]
        )

    client = RecordServiceClient(config=_config(), client_factory=_make_client_factory(handler))

    response = client.get_by_id("salesorder", IdProperty.INTERNAL_ID, "5001")

    [request] = captured
    assert request.method == "GET"
    assert request.url.params["script"] == "175"
    assert request.url.params["deploy"] == "1"
    assert request.url.params["recordType"] == "salesorder"
    assert json.loads(request.url.params["idOptions"]) == [
        {"idProp": "internalid", "idValue": "5001", "searchOperator": "anyof"}
    ]

    record = response.first()
    assert record is not None
    assert record.internal_id == "5001"
    assert record.fields == {"tranid": "SO-A", "total": 20.0}
    assert [line.index for line in record.sublists["item"]] == [4, 1]
    assert [line.get("item") for line in record.lines_matching("item", "item", ["100"])] == ["100"]


def test_get_related_serializes_child_options() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return _ok([{"internalid": "5001"}, {"internalid": "5002"}])

    client = RecordServiceClient(config=_config(), client_factory=_make_client_factory(handler))

    response = client.get_related(
        "inventoryitem",
        IdProperty.INTERNAL_ID,
        "100",
        [ChildSearchOptions(child_record_type="salesorder", field_id="item", sublist_id="item")],
    )

    assert [result.internal_id for result in response] == ["5001", "5002"]
    params = captured[0].url.params
    assert params["script"] == "178"
    assert json.loads(params["childOptions"]) == [
        {"childRecordType": "salesorder", "fieldId": "item", "sublistId": "item"}
    ]


def test_upsert_puts_line_updates_in_the_body() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return _ok([{"internalid": 5001, "recordType": "salesorder"}])

    client = RecordServiceClient(config=_config(), client_factory=_make_client_factory(handler))
    locator = LineLocator(sublist_id="item", field_id="item", value="100")
    record = RecordOptions(
        record_type="salesorder",
        id_options=(id_search(IdProperty.INTERNAL_ID, "5001"),),
        sublist_updates={
            "item": {
                "item": SublistFieldUpdate(new_value="900", locator=locator),
                "quantity": SublistFieldUpdate(new_value=2, locator=locator),
            }
        },
    )

    client.upsert(record)

    [request] = captured
    assert request.method == "PUT"
    assert request.url.params["script"] == "171"
    body = json.loads(request.content)
    [options] = body["recordOptions"]
    assert options["recordType"] == "salesorder"
    assert options["idOptions"][0]["idValue"] == "5001"
    assert options["sublists"]["item"]["item"] == {
        "newValue": "900",
        "lineIdOptions": {"sublistId": "item", "fieldId": "item", "value": "100"},
    }
    assert options["sublists"]["item"]["quantity"]["newValue"] == 2


def test_create_sends_whole_lines() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return _ok([{"internalid": 200, "recordType": "inventoryitem"}])

    client = RecordServiceClient(config=_config(), client_factory=_make_client_factory(handler))

    response = client.upsert(
        RecordOptions(
            record_type="inventoryitem",
            fields={"itemid": "SKU-1"},
            sublists={"price": [{"pricelevel": "1", "price": 9.5}]},
        )
    )

    options = json.loads(captured[0].content)["recordOptions"][0]
    assert "idOptions" not in options
    assert options["fields"] == {"itemid": "SKU-1"}
    assert options["sublists"] == {"price": [{"pricelevel": "1", "price": 9.5}]}
    assert response.first() is not None
    assert response.first().internal_id == "200"  # type: ignore[union-attr]


def test_http_error_is_mapped_to_record_service_error() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "unavailable"})

    client = RecordServiceClient(config=_config(), client_factory=_make_client_factory(handler))

    with pytest.raises(RecordServiceError) as excinfo:
        client.delete("inventoryitem", IdProperty.ITEM_ID, "SKU-1")

    assert excinfo.value.status_code == 503


def test_error_payload_is_raised() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"status": 400, "message": "bad request", "error": "INVALID_FLD_VALUE"}
        )

    client = RecordServiceClient(config=_config(), client_factory=_make_client_factory(handler))

    with pytest.raises(RecordServiceError, match="INVALID_FLD_VALUE") as excinfo:
        client.get_by_id("inventoryitem", IdProperty.ITEM_ID, "SKU-1")

    assert excinfo.value.status_code == 400


def test_unparseable_payload_is_raised() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>maintenance</html>")

    client = RecordServiceClient(config=_config(), client_factory=_make_client_factory(handler))

    with pytest.raises(RecordServiceError, match="payload"):
        client.get_by_id("inventoryitem", IdProperty.ITEM_ID, "SKU-1")


def test_calls_are_spaced_by_request_delay() -> None:
    now = [100.0]
    sleeps: list[float] = []

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        now[0] += seconds

    def handler(_: httpx.Request) -> httpx.Response:
        now[0] += 0.1
        return _ok([])

    client = RecordServiceClient(
        config=_config(request_delay_seconds=0.5),
        client_factory=_make_client_factory(handler),
        sleep=sleep,
        monotonic=lambda: now[0],
    )

    client.get_by_id("inventoryitem", IdProperty.ITEM_ID, "SKU-1")
    client.get_by_id("inventoryitem", IdProperty.ITEM_ID, "SKU-2")
    now[0] += 1.0
    client.get_by_id("inventoryitem", IdProperty.ITEM_ID, "SKU-3")

    assert sleeps == [pytest.approx(0.5)]
