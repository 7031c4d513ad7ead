"""Loaders for caller-supplied input files."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .schema import ID_LIST, RECORD_OPTIONS_LIST, REFERENCE_CONFIGS
from .translator import record_options_from_payload, reference_config_from_payload

if TYPE_CHECKING:
    from pathlib import Path

    from relinker.domain.reconciliation.contracts import ReferenceConfig
    from relinker.domain.records import RecordOptions


def load_new_records(path: Path) -> list[RecordOptions]:
    """Replacement record definitions: a JSON list of ``{recordType, fields, sublists}``."""
    payloads = RECORD_OPTIONS_LIST.validate_json(path.read_bytes())
    return [record_options_from_payload(payload) for payload in payloads]


def load_reference_configs(path: Path) -> dict[str, ReferenceConfig]:
    payloads = REFERENCE_CONFIGS.validate_json(path.read_bytes())
    return {
        child_type: reference_config_from_payload(payload)
        for child_type, payload in payloads.items()
    }


def load_id_list(path: Path) -> list[str]:
    """Ids from a JSON list, or one id per line in plain text files."""
    text = path.read_text(encoding="utf-8")
    if text.lstrip().startswith("["):
        return [str(value) for value in ID_LIST.validate_json(text)]
    return [line.strip() for line in text.splitlines() if line.strip()]
