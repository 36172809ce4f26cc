"""Many-to-many memberships reconciled through their join rows.

Join rows are ordinary children of the parent, so the core handles them
unchanged. This module adds what plain children do not need:

1) pre-population: pair every candidate related entity with its existing
   membership, or with a transient one, to build an edit form
2) batch construction: translate "keep"/"remove" toggles into identity +
   removal-flag rows (the only contract the core understands)
3) uniqueness: at most one live membership per (parent, related entity)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from operator import attrgetter
from typing import TYPE_CHECKING, Any

from .attributes import (
    IDENTITY_KEY,
    REMOVAL_KEY,
    attribute_set_from_row,
    cast_flag,
    coerce_identity,
    ordered_rows,
)
from .errors import (
    DuplicateMembership,
    FailureSet,
    FieldError,
    UnknownRelatedEntity,
    ValidationFailure,
    child_key,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Mapping, Sequence

    from .attributes import AttributeSet, Batch, RawRows
    from .collection import NestedCollection
    from .plan import ReconciliationPlan

KEEP_KEY = "keep"


@dataclass(frozen=True, slots=True)
class MembershipPairing[TRelated, TMembership]:
    """One candidate related entity and the membership a form row edits."""

    related: TRelated
    membership: TMembership
    persisted: bool


def prepopulate[TRelated, TMembership](
    existing: Sequence[TMembership],
    candidates: Sequence[TRelated],
    *,
    related_of: Callable[[TMembership], TRelated],
    build_transient: Callable[[TRelated], TMembership],
    identity_of: Callable[[Any], object] = attrgetter("id"),
) -> tuple[MembershipPairing[TRelated, TMembership], ...]:
    """Pair each candidate with its live membership or a transient stand-in.

    Exactly one pairing per candidate, in candidate order. Transient memberships
    are not attached to the parent. Repeating a candidate is a caller error.
    """

    by_related: dict[object, TMembership] = {}
    for membership in existing:
        by_related.setdefault(identity_of(related_of(membership)), membership)

    seen: set[object] = set()
    pairings: list[MembershipPairing[TRelated, TMembership]] = []
    for candidate in candidates:
        key = identity_of(candidate)
        if key in seen:
            raise ValueError(f"candidate {key!r} listed more than once")
        seen.add(key)
        membership = by_related.get(key)
        if membership is None:
            pairings.append(MembershipPairing(candidate, build_transient(candidate), False))
        else:
            persisted = identity_of(membership) is not None
            pairings.append(MembershipPairing(candidate, membership, persisted))
    return tuple(pairings)


@dataclass(frozen=True, slots=True, kw_only=True)
class MembershipToggle:
    """Form intent for one candidate: should the membership exist afterwards?"""

    related_id: int
    keep: bool
    membership_id: int | None = None
    fields: Mapping[str, object] = field(default_factory=dict[str, object])


def toggles_from_pairings(
    pairings: Sequence[MembershipPairing[Any, Any]],
    kept: Collection[int],
    *,
    fields: Mapping[int, Mapping[str, object]] | None = None,
    identity_of: Callable[[Any], object] = attrgetter("id"),
) -> tuple[MembershipToggle, ...]:
    """Derive one toggle per pairing from the set of checked related ids."""

    extra = fields or {}
    toggles: list[MembershipToggle] = []
    for pairing in pairings:
        related_id = identity_of(pairing.related)
        if not isinstance(related_id, int):
            raise ValueError("candidates must be persisted before toggling memberships")
        membership_id = identity_of(pairing.membership) if pairing.persisted else None
        toggles.append(
            MembershipToggle(
                related_id=related_id,
                keep=related_id in kept,
                membership_id=membership_id if isinstance(membership_id, int) else None,
                fields=extra.get(related_id, {}),
            )
        )
    return tuple(toggles)


def toggles_from_rows(
    rows: RawRows,
    *,
    collection: str,
    related_key: str,
) -> tuple[MembershipToggle, ...]:
    """Read submitted form rows (``related_key``, optional ``id``, ``keep``).

    ``_destroy`` is accepted as the negation of ``keep``; a row carrying both
    with conflicting values is rejected.
    """

    failures = FailureSet()
    toggles: list[MembershipToggle] = []
    for position, row in enumerate(ordered_rows(rows)):
        key = child_key(collection, position)
        try:
            related_id = coerce_identity(row.get(related_key))
            membership_id = coerce_identity(row.get(IDENTITY_KEY))
        except (TypeError, ValueError):
            failures.add(key, FieldError(related_key, "is invalid"))
            continue
        if related_id is None:
            failures.add(key, FieldError(related_key, "can't be blank"))
            continue
        keep = cast_flag(row[KEEP_KEY]) if KEEP_KEY in row else True
        if REMOVAL_KEY in row:
            destroy = cast_flag(row[REMOVAL_KEY])
            if KEEP_KEY in row and keep is destroy:
                failures.add(key, FieldError(REMOVAL_KEY, "contradicts keep"))
                continue
            keep = not destroy
        extra = {
            name: value
            for name, value in row.items()
            if name not in {related_key, IDENTITY_KEY, KEEP_KEY, REMOVAL_KEY}
        }
        toggles.append(
            MembershipToggle(
                related_id=related_id,
                keep=keep,
                membership_id=membership_id,
                fields=extra,
            )
        )
    if failures:
        raise ValidationFailure(failures)
    return tuple(toggles)


def membership_batch(
    toggles: Sequence[MembershipToggle],
    *,
    collection: NestedCollection[Any, Any],
    related_key: str,
) -> Batch:
    """Encode keep/remove toggles as an identity + removal-flag batch.

    - transient + keep   -> create
    - transient + remove -> dropped, never a delete against a missing row
    - persisted + keep   -> update (a no-op unless extra fields changed)
    - persisted + remove -> delete

    Positions follow the toggles, so failures point at the submitted form row.
    """

    failures = FailureSet()
    batch: list[AttributeSet] = []
    for position, toggle in enumerate(toggles):
        if toggle.membership_id is None and not toggle.keep:
            continue
        row: dict[str, object] = {**toggle.fields, related_key: toggle.related_id}
        if toggle.membership_id is not None:
            row[IDENTITY_KEY] = toggle.membership_id
            row[REMOVAL_KEY] = not toggle.keep
        batch.append(
            attribute_set_from_row(
                row, position=position, collection=collection, failures=failures
            )
        )
    if failures:
        raise ValidationFailure(failures)
    return tuple(batch)


def ensure_unique_memberships[TMembership](
    existing: Sequence[TMembership],
    plan: ReconciliationPlan[TMembership],
    *,
    related_id_of: Callable[[TMembership], object],
    related_key: str,
) -> None:
    """Reject creates for related entities that already have a membership.

    A membership deleted by the same plan still counts as covering its related
    entity; re-adding it requires a separate save.
    """

    covered = {related_id_of(membership) for membership in existing}
    for create in plan.creates:
        related_id = create.fields.get(related_key)
        if related_id in covered:
            raise DuplicateMembership(plan.collection, related_id, create.position)
        covered.add(related_id)


def resolve_related[TRelated](
    plan: ReconciliationPlan[Any],
    lookup: Callable[[int], TRelated | None],
    *,
    related_key: str,
) -> dict[int, TRelated]:
    """Load every related entity referenced by the plan's creates."""

    resolved: dict[int, TRelated] = {}
    for create in plan.creates:
        related_id = create.fields.get(related_key)
        if not isinstance(related_id, int):
            raise UnknownRelatedEntity(plan.collection, related_id, create.position)
        if related_id in resolved:
            continue
        related = lookup(related_id)
        if related is None:
            raise UnknownRelatedEntity(plan.collection, related_id, create.position)
        resolved[related_id] = related
    return resolved

