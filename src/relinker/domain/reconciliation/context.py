"""Per-run reconciliation context threaded through every operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from relinker.domain.ports.record_service import RecordServiceError
from relinker.domain.records import IdProperty

from .contracts import ReconcilerError, ReconcilerStage
from .state import DependentUpdateHistory, ReconcilerState, append_update_history

if TYPE_CHECKING:
    from collections.abc import Callable

    from relinker.domain.ports.persistence import ReconcilerStore
    from relinker.domain.ports.record_service import RecordService
    from relinker.domain.records import RecordOptions

    from .contracts import ReferenceConfigs

log = getLogger(__name__)

DEFAULT_SAVE_INTERVAL = 10


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, kw_only=True)
class ReconcilerContext:
    """Everything one reconciliation run reads and mutates."""

    service: RecordService
    store: ReconcilerStore
    parent_record_type: str
    references: ReferenceConfigs
    state: ReconcilerState
    history: DependentUpdateHistory
    create_options: dict[str, RecordOptions] = field(default_factory=dict)
    parent_internal_ids: dict[str, str] = field(default_factory=dict)
    save_interval: int = DEFAULT_SAVE_INTERVAL
    snapshot: bool = False
    clock: Callable[[], datetime] = _utcnow

    def set_stage(self, stage: ReconcilerStage) -> None:
        self.state.current_stage = stage

    def save_state(self) -> None:
        self.store.save_state(self.state, snapshot=self.snapshot)

    def save_history(self, pending: DependentUpdateHistory | None = None) -> None:
        """Merge ``pending`` updates into the run history and write it out."""
        if pending:
            append_update_history(self.history, pending)
        self.store.save_history(self.history, snapshot=self.snapshot)

    def record_error(
        self,
        parent_id: str,
        error: ReconcilerError,
        **context: object,
    ) -> None:
        log.error(f"[{parent_id}] {self.state.current_stage}: {error.message}")
        self.state.record_error(parent_id, error, clock=self.clock, **context)

    def resolve_parent_internal_id(self, parent_id: str) -> str | ReconcilerError:
        """Internal id of the live parent record, looked up by logical id once per run."""
        cached = self.parent_internal_ids.get(parent_id)
        if cached is not None:
            return cached
        try:
            response = self.service.get_by_id(
                self.parent_record_type, IdProperty.ITEM_ID, parent_id
            )
        except RecordServiceError as exc:
            return ReconcilerError(
                source="resolve_parent_internal_id",
                message=f"Failed to look up {self.parent_record_type} '{parent_id}'",
                error=exc,
            )
        record = response.first()
        if record is None:
            return ReconcilerError(
                source="resolve_parent_internal_id",
                message=f"No {self.parent_record_type} found with itemid '{parent_id}'",
            )
        self.parent_internal_ids[parent_id] = record.internal_id
        return record.internal_id
