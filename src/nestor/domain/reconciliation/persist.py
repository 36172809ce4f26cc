"""Atomic save of a parent together with its nested batches.

Responsibilities of this stage:
- plan every nested collection before touching anything
- assign allow-listed parent fields and apply every plan in memory
- validate the parent and every touched child, reporting per entity
- commit once, or roll the whole transaction back

The transaction itself belongs to the unit of work handed in by the caller;
this module only decides between ``commit`` and ``rollback``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from .apply import apply_plan, validate_applied
from .errors import PARENT_KEY, FailureSet, ValidationFailure

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from .apply import ApplyResult
    from .attributes import Batch
    from .collection import NestedCollection
    from .errors import FieldError
    from .plan import ReconciliationPlan

log = logging.getLogger(__name__)


class Versioned(Protocol):
    """Parent carrying an optimistic concurrency token."""

    def bump_version(self) -> None: ...


class TransactionBoundary(Protocol):
    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(frozen=True, slots=True)
class NestedAssignment[TParent, TChild]:
    """A batch destined for one nested collection of the parent."""

    collection: NestedCollection[TParent, TChild]
    batch: Batch


@dataclass(slots=True)
class NestedSaveResult[TParent]:
    """Outcome of one nested save.

    On failure nothing was persisted and ``parent`` must be treated as stale.
    """

    parent: TParent
    failures: FailureSet = field(default_factory=FailureSet)
    plans: dict[str, ReconciliationPlan[Any]] = field(
        default_factory=dict[str, "ReconciliationPlan[Any]"]
    )
    results: dict[str, ApplyResult[Any]] = field(default_factory=dict[str, "ApplyResult[Any]"])
    committed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> TParent:
        if self.failures:
            raise ValidationFailure(self.failures)
        return self.parent


def plan_nested_changes[TParent](
    parent: TParent,
    assignments: Sequence[NestedAssignment[TParent, Any]],
) -> dict[str, ReconciliationPlan[Any]]:
    """Plan every assignment; raises before any mutation on consistency errors."""

    plans: dict[str, ReconciliationPlan[Any]] = {}
    for assignment in assignments:
        name = assignment.collection.name
        if name in plans:
            raise ValueError(f"collection {name!r} assigned more than once")
        plans[name] = assignment.collection.plan(parent, assignment.batch)
    return plans


def apply_nested_changes[TParent: Versioned](
    unit_of_work: TransactionBoundary,
    parent: TParent,
    *,
    attributes: Mapping[str, object],
    permitted_attributes: frozenset[str],
    assignments: Sequence[NestedAssignment[TParent, Any]],
    validate_parent: Callable[[TParent], Sequence[FieldError]],
) -> NestedSaveResult[TParent]:
    """Apply parent fields and nested batches in one all-or-nothing transaction."""

    plans = plan_nested_changes(parent, assignments)

    parent_changes = _parent_changes(parent, attributes, permitted_attributes)
    for name, value in parent_changes.items():
        setattr(parent, name, value)

    failures = FailureSet()
    failures.extend(PARENT_KEY, validate_parent(parent))
    results: dict[str, ApplyResult[Any]] = {}
    for assignment in assignments:
        collection = assignment.collection
        result = apply_plan(parent, collection, plans[collection.name])
        results[collection.name] = result
        failures.merge(validate_applied(collection, result))

    if failures:
        unit_of_work.rollback()
        log.info("Rolled back nested save, %d invalid entities: %s", len(failures), failures.keys())
        return NestedSaveResult(parent, failures, plans, results, committed=False)

    if parent_changes or any(plan.has_effective_changes for plan in plans.values()):
        parent.bump_version()
    unit_of_work.commit()
    log.info(
        "Committed nested save (%s): %s",
        ", ".join(sorted(parent_changes)) or "no parent fields",
        "; ".join(plan.summary() for plan in plans.values()) or "no collections",
    )
    return NestedSaveResult(parent, FailureSet(), plans, results, committed=True)


def _parent_changes(
    parent: object,
    attributes: Mapping[str, object],
    permitted: frozenset[str],
) -> dict[str, object]:
    dropped = sorted(set(attributes) - permitted)
    if dropped:
        log.debug("parent: dropped unpermitted keys %s", ", ".join(dropped))
    return {
        name: value
        for name, value in attributes.items()
        if name in permitted and getattr(parent, name) != value
    }
