"""JSON file persistence for reconciler state and update history."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ValidationError

from relinker.domain.ports.persistence import ReconcilerStore, ReconcilerStoreError
from relinker.domain.reconciliation.state import ReconcilerState

from .schema import HistoryPayload, StatePayload
from .translator import (
    history_from_payload,
    history_to_payload,
    state_from_payload,
    state_to_payload,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from relinker.domain.reconciliation.state import DependentUpdateHistory

log = getLogger(__name__)

SNAPSHOT_FORMAT = "%Y%m%d_%H%M%S"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JsonReconcilerStore:
    """Reads and wholesale-rewrites ``<type>_state.json`` and ``<type>_update_history.json``."""

    def __init__(
        self,
        directory: Path,
        parent_record_type: str,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.directory = directory
        self.parent_record_type = parent_record_type
        self._clock = clock

    @property
    def state_path(self) -> Path:
        return self.directory / f"{self.parent_record_type}_state.json"

    @property
    def history_path(self) -> Path:
        return self.directory / f"{self.parent_record_type}_update_history.json"

    def exists(self) -> bool:
        return self.state_path.is_file() and self.history_path.is_file()

    def initialize(self, *, overwrite: bool = False) -> None:
        """Write empty state and history files for a fresh reconciliation."""
        if self.exists() and not overwrite:
            raise ReconcilerStoreError(
                f"Reconciler files already exist in {self.directory}; pass overwrite to reset"
            )
        self.save_state(ReconcilerState())
        self.save_history({})
        log.info(f"Initialised reconciler files in {self.directory}")

    def load_state(self) -> ReconcilerState:
        payload = self._read(self.state_path, StatePayload)
        try:
            return state_from_payload(payload)
        except ValueError as exc:
            raise ReconcilerStoreError(f"Malformed state in {self.state_path}: {exc}") from exc

    def save_state(self, state: ReconcilerState, *, snapshot: bool = False) -> None:
        self._write(self.state_path, state_to_payload(state), snapshot=snapshot)

    def load_history(self) -> DependentUpdateHistory:
        return history_from_payload(self._read(self.history_path, HistoryPayload))

    def save_history(self, history: DependentUpdateHistory, *, snapshot: bool = False) -> None:
        self._write(self.history_path, history_to_payload(history), snapshot=snapshot)

    def _read[M: BaseModel](self, path: Path, model: type[M]) -> M:
        if not path.is_file():
            raise ReconcilerStoreError(f"Reconciler file not found: {path}")
        try:
            return model.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            raise ReconcilerStoreError(f"Unreadable reconciler file {path}: {exc}") from exc

    def _write(self, path: Path, payload: BaseModel, *, snapshot: bool) -> None:
        data = json.dumps(payload.model_dump(mode="json", by_alias=True), indent=4)
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, prefix=f".{path.name}.", delete=False, encoding="utf-8"
        ) as handle:
            handle.write(data)
            temp_path = Path(handle.name)
        os.replace(temp_path, path)
        if snapshot:
            stamp = self._clock().strftime(SNAPSHOT_FORMAT)
            (path.parent / f"{stamp}_{path.name}").write_text(data, encoding="utf-8")


if TYPE_CHECKING:
    _store_check: ReconcilerStore = JsonReconcilerStore(Path(), "inventoryitem")
