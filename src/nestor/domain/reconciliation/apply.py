"""Apply a reconciliation plan to the in-memory aggregate.

Responsibilities of this stage:
- execute deletes, updates and creates via the collection's commands
- refuse changes to immutable fields, reporting them as field errors
- avoid any commit/transaction control (see ``persist``)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .errors import FailureSet, FieldError, child_key

if TYPE_CHECKING:
    from .collection import NestedCollection
    from .plan import ReconciliationPlan


@dataclass(slots=True)
class ApplyResult[TChild]:
    """Summary of in-memory mutations performed for one collection."""

    collection: str
    created: list[tuple[int, TChild]] = field(default_factory=list[tuple[int, Any]])
    updated: list[tuple[int, TChild]] = field(default_factory=list[tuple[int, Any]])
    deleted: list[TChild] = field(default_factory=list[Any])
    unchanged: int = 0
    failures: FailureSet = field(default_factory=FailureSet)

    @property
    def touched(self) -> list[tuple[int, TChild]]:
        return sorted(self.created + self.updated, key=lambda pair: pair[0])


def apply_plan[TParent, TChild](
    parent: TParent,
    collection: NestedCollection[TParent, TChild],
    plan: ReconciliationPlan[TChild],
) -> ApplyResult[TChild]:
    """Mutate ``parent``'s collection so that it reflects ``plan``."""

    result: ApplyResult[TChild] = ApplyResult(collection.name)

    for delete in plan.deletes:
        collection.discard(parent, delete.target)
        result.deleted.append(delete.target)

    for update in plan.updates:
        if update.is_noop:
            result.unchanged += 1
            continue
        key = child_key(collection.name, update.position)
        for name, value in update.changes.items():
            if name in collection.immutable:
                result.failures.add(key, FieldError(name, "cannot be changed"))
                continue
            setattr(update.target, name, value)
        result.updated.append((update.position, update.target))

    for create in plan.creates:
        result.created.append((create.position, collection.build(parent, create)))

    return result


def validate_applied[TParent, TChild](
    collection: NestedCollection[TParent, TChild],
    result: ApplyResult[TChild],
) -> FailureSet:
    """Collect apply-time failures plus entity validation for touched children."""

    failures = FailureSet()
    failures.merge(result.failures)
    for position, child in result.touched:
        failures.extend(child_key(collection.name, position), collection.validate(child))
    return failures
