"""HTTP client for the Record Service script endpoints."""

from __future__ import annotations

import asyncio
import json
import time
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from relinker.adapters.http_resilience import ResilientClient
from relinker.config.record_service import RecordOperation, get_record_service_config
from relinker.domain.ports.record_service import RecordService, RecordServiceError
from relinker.domain.records import id_search

from .schema import RecordResponsePayload
from .translator import (
    parse_record_response,
    serialize_child_options,
    serialize_id_options,
    serialize_record_options,
    serialize_response_options,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Sequence

    from relinker.config.http_resilience import ResilienceConfig
    from relinker.config.record_service import RecordServiceConfig
    from relinker.domain.records import (
        ChildSearchOptions,
        IdProperty,
        RecordOptions,
        RecordResponse,
        ResponseOptions,
    )

log = getLogger(__name__)


class RecordServiceClient:
    """Synchronous facade over the async Record Service endpoints.

    Calls are issued strictly one after another with at least
    ``request_delay_seconds`` between them.
    """

    def __init__(
        self,
        *,
        config: RecordServiceConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._sleep = sleep
        self._monotonic = monotonic
        self._last_call: float | None = None

    def get_by_id(
        self,
        record_type: str,
        id_property: IdProperty,
        id_value: str,
        response_options: ResponseOptions | None = None,
    ) -> RecordResponse:
        params: dict[str, object] = {
            "recordType": record_type,
            "idOptions": serialize_id_options([id_search(id_property, id_value)]),
        }
        if response_options is not None:
            params["responseOptions"] = serialize_response_options(response_options)
        return self._run(
            self._request_async(method="GET", operation=RecordOperation.GET_RECORD, params=params)
        )

    def get_related(
        self,
        parent_record_type: str,
        id_property: IdProperty,
        id_value: str,
        child_options: Sequence[ChildSearchOptions],
    ) -> RecordResponse:
        params: dict[str, object] = {
            "parentRecordType": parent_record_type,
            "idOptions": serialize_id_options([id_search(id_property, id_value)]),
            "childOptions": serialize_child_options(child_options),
        }
        return self._run(
            self._request_async(method="GET", operation=RecordOperation.GET_RELATED, params=params)
        )

    def upsert(
        self,
        record: RecordOptions,
        response_options: ResponseOptions | None = None,
    ) -> RecordResponse:
        body: dict[str, object] = {"recordOptions": [serialize_record_options(record)]}
        if response_options is not None:
            body["responseOptions"] = serialize_response_options(response_options)
        return self._run(
            self._request_async(method="PUT", operation=RecordOperation.UPSERT, body=body)
        )

    def delete(
        self,
        record_type: str,
        id_property: IdProperty,
        id_value: str,
    ) -> RecordResponse:
        params: dict[str, object] = {
            "recordType": record_type,
            "idOptions": serialize_id_options([id_search(id_property, id_value)]),
        }
        return self._run(
            self._request_async(method="DELETE", operation=RecordOperation.DELETE, params=params)
        )

    def _run[T](self, coroutine: Coroutine[Any, Any, T]) -> T:
        delay = self._config.request_delay_seconds
        if delay > 0 and self._last_call is not None:
            remaining = delay - (self._monotonic() - self._last_call)
            if remaining > 0:
                self._sleep(remaining)
        try:
            return asyncio.run(coroutine)
        finally:
            self._last_call = self._monotonic()

    async def _request_async(
        self,
        *,
        method: str,
        operation: RecordOperation,
        params: dict[str, object] | None = None,
        body: dict[str, object] | None = None,
    ) -> RecordResponse:
        deployment = self._config.deployments[operation]
        query: dict[str, str] = deployment.as_params()
        for key, value in (params or {}).items():
            # nested request options travel as JSON strings in the query
            query[key] = value if isinstance(value, str) else json.dumps(value)

        async with self._client_factory(self._resilience) as client:
            try:
                response = await client.request(method, "", params=query, json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                raise RecordServiceError(
                    f"{operation} request failed with HTTP {status}", status_code=status
                ) from exc
            except httpx.HTTPError as exc:
                raise RecordServiceError(f"{operation} request failed: {exc}") from exc

        try:
            payload = RecordResponsePayload.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RecordServiceError(f"Unexpected {operation} response payload") from exc

        if payload.error or payload.status >= 400:
            log.error(f"Record Service {operation} error {payload.status}: {payload.message}")
            raise RecordServiceError(
                payload.error or payload.message or f"{operation} failed",
                status_code=payload.status,
            )
        if payload.rejects:
            log.warning(f"Record Service {operation} rejected {len(payload.rejects)} item(s)")
        return parse_record_response(payload)


def build_record_service_client(*, request_delay_seconds: float = 0.0) -> RecordServiceClient:
    config = get_record_service_config(request_delay_seconds=request_delay_seconds)
    return RecordServiceClient(config=config)


if TYPE_CHECKING:
    _service_check: RecordService = RecordServiceClient(config=get_record_service_config())
