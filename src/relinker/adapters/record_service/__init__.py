"""Record Service adapter package."""

from __future__ import annotations

from .client import RecordServiceClient, build_record_service_client
from .schema import RecordResponsePayload, RecordResultPayload
from .translator import parse_record_response, serialize_record_options

__all__ = [
    "RecordResponsePayload",
    "RecordResultPayload",
    "RecordServiceClient",
    "build_record_service_client",
    "parse_record_response",
    "serialize_record_options",
]
