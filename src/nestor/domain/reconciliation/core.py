"""Identity matching and diffing of a batch against a current collection.

``reconcile`` is read-only: it partitions the batch into creates, updates and
deletes, lists the untouched children, and raises on consistency errors before
anything is mutated. Omitted children are never deleted; deletion is explicit.
"""

from __future__ import annotations

import logging
from operator import attrgetter
from typing import TYPE_CHECKING, Final

from .errors import DuplicateChildReference, TooManyRecords, UnknownChildReference
from .options import DEFAULT_OPTIONS
from .plan import ChildCreate, ChildDelete, ChildUpdate, ReconciliationPlan

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from .attributes import AttributeSet, Batch
    from .options import NestedAttributesOptions

log = logging.getLogger(__name__)

_MISSING: Final = object()


def reconcile[TChild](
    current: Sequence[TChild],
    batch: Batch,
    *,
    collection: str = "children",
    options: NestedAttributesOptions = DEFAULT_OPTIONS,
    identity_of: Callable[[TChild], object] = attrgetter("id"),
) -> ReconciliationPlan[TChild]:
    """Compute the plan that makes ``current`` match the intent of ``batch``."""

    if options.limit is not None and len(batch) > options.limit:
        raise TooManyRecords(collection, options.limit, len(batch))

    by_identity: dict[object, TChild] = {}
    for item in current:
        identity = identity_of(item)
        if identity is not None:
            by_identity[identity] = item

    referenced: dict[object, int] = {}
    creates: list[ChildCreate] = []
    updates: list[ChildUpdate[TChild]] = []
    deletes: list[ChildDelete[TChild]] = []
    skipped: list[int] = []

    for attributes in batch:
        if attributes.identity is None:
            # removing something that never existed is a no-op
            if attributes.remove or _rejected(options, attributes):
                skipped.append(attributes.position)
                continue
            creates.append(ChildCreate(attributes.position, dict(attributes.fields)))
            continue

        target = by_identity.get(attributes.identity)
        if target is None:
            raise UnknownChildReference(collection, attributes.identity, attributes.position)
        first = referenced.setdefault(attributes.identity, attributes.position)
        if first != attributes.position:
            raise DuplicateChildReference(
                collection, attributes.identity, (first, attributes.position)
            )

        if attributes.remove and options.allow_destroy:
            deletes.append(ChildDelete(attributes.position, target))
            continue
        # identified rows always reach entity validation, blank or not
        updates.append(
            ChildUpdate(attributes.position, target, _changes(target, attributes.fields))
        )

    acted_on = {id(update.target) for update in updates} | {id(d.target) for d in deletes}
    plan = ReconciliationPlan(
        collection=collection,
        current_size=len(current),
        creates=tuple(creates),
        updates=tuple(updates),
        deletes=tuple(deletes),
        untouched=tuple(item for item in current if id(item) not in acted_on),
        skipped=tuple(skipped),
    )
    log.debug("Planned %s", plan.summary())
    return plan


def _rejected(options: NestedAttributesOptions, attributes: AttributeSet) -> bool:
    return options.reject_if is not None and options.reject_if(attributes)


def _changes(target: object, fields: Mapping[str, object]) -> dict[str, object]:
    changes: dict[str, object] = {}
    for name, value in fields.items():
        if getattr(target, name, _MISSING) != value:
            changes[name] = value
    return changes
