"""Descriptor binding the reconciliation core to one nested association."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from operator import attrgetter
from typing import TYPE_CHECKING

from .core import reconcile
from .errors import FieldError
from .options import DEFAULT_OPTIONS, NestedAttributesOptions
from .plan import ChildCreate, ReconciliationPlan

if TYPE_CHECKING:
    from .attributes import AttributeSet

type Coercer = Callable[[object], object]


def _no_errors(_child: object) -> Sequence[FieldError]:
    return ()


@dataclass(frozen=True, slots=True, kw_only=True)
class NestedCollection[TParent, TChild]:
    """How one parent exposes, builds, discards and validates its children.

    ``build`` receives the planned create (position + fields) and must attach the
    new child to the parent. ``check`` runs after planning and before any
    mutation; it may raise a ``ReconciliationError`` to abort the whole save.
    """

    name: str
    children: Callable[[TParent], Sequence[TChild]]
    build: Callable[[TParent, ChildCreate], TChild]
    discard: Callable[[TParent, TChild], None]
    permitted: frozenset[str]
    coercers: Mapping[str, Coercer] = field(default_factory=dict[str, "Coercer"])
    immutable: frozenset[str] = frozenset()
    validate: Callable[[TChild], Sequence[FieldError]] = _no_errors
    options: NestedAttributesOptions = DEFAULT_OPTIONS
    check: Callable[[TParent, ReconciliationPlan[TChild]], None] | None = None
    identity_of: Callable[[TChild], object] = attrgetter("id")

    def plan(self, parent: TParent, batch: Sequence[AttributeSet]) -> ReconciliationPlan[TChild]:
        plan = reconcile(
            self.children(parent),
            tuple(batch),
            collection=self.name,
            options=self.options,
            identity_of=self.identity_of,
        )
        if self.check is not None:
            self.check(parent, plan)
        return plan
