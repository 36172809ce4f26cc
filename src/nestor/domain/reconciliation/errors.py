"""Failure types raised or reported by nested-attribute reconciliation.

Consistency errors (unknown or repeated identities, duplicate memberships, batch
limits) abort the whole reconciliation before anything is mutated. Field-level
problems are collected into a ``FailureSet`` keyed by the entity that produced
them: ``"parent"`` or ``"<collection>[<position>]"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

PARENT_KEY = "parent"


def child_key(collection: str, position: int) -> str:
    return f"{collection}[{position}]"


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field} {self.message}"


@dataclass(slots=True)
class FailureSet:
    """Field errors grouped by failing entity, in the order they were reported."""

    _errors: dict[str, list[FieldError]] = field(default_factory=dict[str, list[FieldError]])

    def add(self, key: str, error: FieldError) -> None:
        self._errors.setdefault(key, []).append(error)

    def extend(self, key: str, errors: Iterable[FieldError]) -> None:
        for error in errors:
            self.add(key, error)

    def merge(self, other: FailureSet) -> None:
        for key, errors in other.items():
            self.extend(key, errors)

    def errors_for(self, key: str) -> tuple[FieldError, ...]:
        return tuple(self._errors.get(key, ()))

    def items(self) -> Iterator[tuple[str, tuple[FieldError, ...]]]:
        for key, errors in self._errors.items():
            yield key, tuple(errors)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._errors)

    def as_dict(self) -> dict[str, list[str]]:
        return {key: [str(error) for error in errors] for key, errors in self._errors.items()}

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)


class ReconciliationError(Exception):
    """Base class for structured reconciliation failures."""


class UnknownChildReference(ReconciliationError):
    """A batch row names an identity that is not part of the current collection."""

    def __init__(self, collection: str, identity: object, position: int) -> None:
        super().__init__(
            f"{child_key(collection, position)}: no {collection} item with id {identity!r}"
        )
        self.collection = collection
        self.identity = identity
        self.position = position


class DuplicateChildReference(ReconciliationError):
    """The same identity appears in more than one row of a batch."""

    def __init__(self, collection: str, identity: object, positions: tuple[int, int]) -> None:
        first, second = positions
        super().__init__(
            f"{collection}: id {identity!r} referenced at positions {first} and {second}"
        )
        self.collection = collection
        self.identity = identity
        self.positions = positions


class DuplicateMembership(ReconciliationError):
    """A plan would create a second live membership for the same related entity."""

    def __init__(self, collection: str, related_id: object, position: int) -> None:
        super().__init__(
            f"{child_key(collection, position)}: related entity {related_id!r} "
            "already has a membership"
        )
        self.collection = collection
        self.related_id = related_id
        self.position = position


class UnknownRelatedEntity(ReconciliationError):
    """A membership row references a related entity that does not exist."""

    def __init__(self, collection: str, related_id: object, position: int) -> None:
        super().__init__(f"{child_key(collection, position)}: unknown related id {related_id!r}")
        self.collection = collection
        self.related_id = related_id
        self.position = position


class TooManyRecords(ReconciliationError):
    """A batch exceeds the configured row limit for its collection."""

    def __init__(self, collection: str, limit: int, size: int) -> None:
        super().__init__(f"{collection}: maximum {limit} records are allowed, got {size}")
        self.collection = collection
        self.limit = limit
        self.size = size


class ValidationFailure(ReconciliationError):
    """One or more entities failed field-level validation."""

    def __init__(self, failures: FailureSet) -> None:
        summary = "; ".join(
            f"{key}: {', '.join(messages)}" for key, messages in failures.as_dict().items()
        )
        super().__init__(f"Validation failed: {summary}")
        self.failures = failures


class ConcurrentModificationError(ReconciliationError):
    """The parent was changed by another transaction since it was loaded."""


class PersistenceConflictError(ReconciliationError):
    """The storage backend rejected the batch (e.g. a constraint violation)."""
