"""Port for durable reconciler state and update history."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from relinker.domain.reconciliation.state import DependentUpdateHistory, ReconcilerState


class ReconcilerStoreError(RuntimeError):
    """Raised when persisted state or history is missing or malformed."""


@runtime_checkable
class ReconcilerStore(Protocol):
    """Whole-file persistence of one parent record type's state and history."""

    def load_state(self) -> ReconcilerState: ...

    def save_state(self, state: ReconcilerState, *, snapshot: bool = False) -> None: ...

    def load_history(self) -> DependentUpdateHistory: ...

    def save_history(self, history: DependentUpdateHistory, *, snapshot: bool = False) -> None: ...


__all__ = ["ReconcilerStore", "ReconcilerStoreError"]
