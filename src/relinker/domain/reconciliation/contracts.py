"""Shared reconciliation contract components.

This module holds the value types passed between the generator, executor,
lifecycle handlers and the state machine:
- stage/phase enums
- the tagged :class:`ReconcilerError` failure value
- per-child-type reference configuration
- the :class:`ReferenceFieldUpdate` substitution plan
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from relinker.domain.records import ResponseOptions

if TYPE_CHECKING:
    from collections.abc import Mapping

    from relinker.domain.records import FieldValue


class ReconcilerStage(StrEnum):
    """Where a parent is in its two-phase reconciliation."""

    PRE_PROCESS = "PRE_PROCESS"
    VALIDATE_INITIAL_STATE = "VALIDATE_INITIAL_STATE"
    EVALUATE_INITIAL_STATE = "EVALUATE_INITIAL_STATE"
    GENERATE_DEPENDENT_DICTIONARY = "GENERATE_DEPENDENT_DICTIONARY"
    GENERATE_PLACEHOLDER_UPDATE = "GENERATE_PLACEHOLDER_UPDATE"
    RUN_PLACEHOLDER_UPDATE = "RUN_PLACEHOLDER_UPDATE"
    VALIDATE_FIRST_UPDATE = "VALIDATE_FIRST_UPDATE"
    DELETE_OLD_ITEM = "DELETE_OLD_ITEM"
    CREATE_NEW_ITEM = "CREATE_NEW_ITEM"
    GENERATE_NEW_ITEM_UPDATE = "GENERATE_NEW_ITEM_UPDATE"
    RUN_NEW_ITEM_UPDATE = "RUN_NEW_ITEM_UPDATE"
    END = "END"


STOPPABLE_STAGES = frozenset(
    {
        ReconcilerStage.RUN_PLACEHOLDER_UPDATE,
        ReconcilerStage.VALIDATE_FIRST_UPDATE,
        ReconcilerStage.DELETE_OLD_ITEM,
        ReconcilerStage.CREATE_NEW_ITEM,
        ReconcilerStage.END,
    }
)


class UpdatePhase(StrEnum):
    FIRST = "first"
    SECOND = "second"


@dataclass(slots=True, frozen=True, kw_only=True)
class ReconcilerError:
    """Tagged failure value returned instead of raising.

    Operations return ``None`` for a no-op success, their result on success,
    or a ``ReconcilerError`` when the current parent cannot proceed.
    """

    source: str
    message: str
    error: object = None
    details: tuple[object, ...] = ()
    is_error: Literal[True] = True

    def to_dict(self) -> dict[str, object]:
        return {
            "isError": True,
            "source": self.source,
            "message": self.message,
            "error": _describe(self.error),
            "details": [_describe(detail) for detail in self.details],
        }


def _describe(value: object) -> object:
    if value is None or isinstance(value, str | int | float | bool):
        return value
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    if isinstance(value, ReconcilerError):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(key): _describe(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_describe(item) for item in value]
    return repr(value)


type Outcome[T] = T | ReconcilerError


@dataclass(slots=True, frozen=True, kw_only=True)
class CacheOptions:
    """Fields snapshotted before a substitution so side effects can be detected."""

    fields: tuple[str, ...] = ()
    sublists: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def as_response_options(self) -> ResponseOptions:
        return ResponseOptions(fields=self.fields, sublists=self.sublists)


@dataclass(slots=True, frozen=True, kw_only=True)
class ReferenceConfig:
    """How one child record type references its parent."""

    reference_field_id: str
    sublist_id: str
    cache_options: CacheOptions = field(default_factory=CacheOptions)
    response_options: ResponseOptions = field(default_factory=ResponseOptions)
    # constant sublist values written alongside every substituted reference
    sublist_fields: Mapping[str, FieldValue] = field(default_factory=dict)

    def fetch_options(self) -> ResponseOptions:
        """Response options covering everything the generator and executor read."""
        required = ResponseOptions(
            fields=(),
            sublists={self.sublist_id: (self.reference_field_id,)},
        )
        return self.response_options.merged(self.cache_options.as_response_options()).merged(
            required
        )


type ReferenceConfigs = Mapping[str, ReferenceConfig]


@dataclass(slots=True, kw_only=True)
class ReferenceFieldUpdate:
    """Plan to move a sublist reference off ``old_reference``.

    ``line_cache`` maps each new reference value to the line fields captured
    when the plan was generated; it has one entry per line that held
    ``old_reference`` at that time.
    """

    record_type: str
    sublist_id: str
    reference_field_id: str
    old_reference: str
    validation_dictionary: dict[str, FieldValue] = field(default_factory=dict)
    line_cache: dict[str, dict[str, FieldValue]] = field(default_factory=dict)


type DependentDictionary = dict[str, dict[str, list[str]]]
"""parent id -> child record type -> child internal ids"""
