"""Reconciler progress state and the append-only update history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .contracts import (
    DependentDictionary,
    ReconcilerError,
    ReconcilerStage,
    ReferenceFieldUpdate,
    UpdatePhase,
)

if TYPE_CHECKING:
    from collections.abc import Callable

type ChildUpdates = dict[str, dict[str, list[ReferenceFieldUpdate]]]
"""child record type -> child internal id -> updates applied"""

type ParentHistory = dict[UpdatePhase, ChildUpdates]

type DependentUpdateHistory = dict[str, ParentHistory]
"""parent id -> phase -> child record type -> child internal id -> updates"""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(slots=True, kw_only=True)
class ReconcilerState:
    """Completion index over the update history plus deletion/creation memos."""

    current_stage: ReconcilerStage = ReconcilerStage.PRE_PROCESS
    first_update: DependentDictionary = field(default_factory=dict)
    second_update: DependentDictionary = field(default_factory=dict)
    items_deleted: list[str] = field(default_factory=list)
    new_items: dict[str, str] = field(default_factory=dict)
    errors: list[dict[str, object]] = field(default_factory=list)

    def is_first_update_complete(self, parent_id: str, child_type: str, child_id: str) -> bool:
        return child_id in self.first_update.get(parent_id, {}).get(child_type, ())

    def is_second_update_complete(self, parent_id: str, child_type: str, child_id: str) -> bool:
        return child_id in self.second_update.get(parent_id, {}).get(child_type, ())

    def mark_deleted(self, parent_id: str) -> None:
        if parent_id not in self.items_deleted:
            self.items_deleted.append(parent_id)

    def record_error(
        self,
        parent_id: str,
        error: ReconcilerError,
        *,
        stage: ReconcilerStage | None = None,
        clock: Callable[[], datetime] = _utcnow,
        **context: object,
    ) -> None:
        entry: dict[str, object] = {
            "timestamp": clock().isoformat(),
            "parentId": parent_id,
            "stage": str(stage or self.current_stage),
        }
        entry.update({_camel(key): value for key, value in context.items() if value is not None})
        entry["error"] = error.to_dict()
        self.errors.append(entry)


def new_parent_history() -> ParentHistory:
    return {UpdatePhase.FIRST: {}, UpdatePhase.SECOND: {}}


def parent_history(history: DependentUpdateHistory, parent_id: str) -> ParentHistory:
    """Return the history entry for ``parent_id``, creating empty phases if needed."""
    entry = history.setdefault(parent_id, new_parent_history())
    for phase in UpdatePhase:
        entry.setdefault(phase, {})
    return entry


def record_updates(
    history: DependentUpdateHistory,
    parent_id: str,
    phase: UpdatePhase,
    child_type: str,
    child_id: str,
    updates: list[ReferenceFieldUpdate],
) -> None:
    """Append applied updates for one child; earlier entries are extended, never replaced."""
    if not updates:
        return
    children = parent_history(history, parent_id)[phase].setdefault(child_type, {})
    children.setdefault(child_id, []).extend(updates)


def update_state(state: ReconcilerState, history: DependentUpdateHistory) -> ReconcilerState:
    """Rebuild the completion index from history alone.

    Exactly the (parent, child type, child id) tuples with a non-empty update
    list in a phase are marked complete for that phase; index entries with no
    history behind them are dropped.
    """
    state.first_update = {}
    state.second_update = {}
    for parent_id, phases in history.items():
        for phase, completed in (
            (UpdatePhase.FIRST, state.first_update),
            (UpdatePhase.SECOND, state.second_update),
        ):
            for child_type, children in phases.get(phase, {}).items():
                done = [child_id for child_id, updates in children.items() if updates]
                if done:
                    completed.setdefault(parent_id, {})[child_type] = done
    state.current_stage = ReconcilerStage.EVALUATE_INITIAL_STATE
    return state


def append_update_history(
    existing: DependentUpdateHistory,
    new: DependentUpdateHistory,
) -> DependentUpdateHistory:
    """Merge ``new`` into ``existing`` without removing or replacing recorded updates.

    Updates from ``new`` that are not already recorded for a child are
    appended after the existing ones.
    """
    for parent_id, phases in new.items():
        target = parent_history(existing, parent_id)
        for phase, child_types in phases.items():
            target_phase = target.setdefault(UpdatePhase(phase), {})
            for child_type, children in child_types.items():
                target_children = target_phase.setdefault(child_type, {})
                for child_id, updates in children.items():
                    if not updates:
                        continue
                    recorded = target_children.setdefault(child_id, [])
                    for update in updates:
                        if update not in recorded:
                            recorded.append(update)
    return existing
