"""Reconciliation plan types.

The plan is the contract between the read-only diff (``core.reconcile``) and
the mutation stage (``apply.apply_plan``). Nothing in a plan has been applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class ChildCreate:
    """New child to build from ``fields``; ``position`` is its batch index."""

    position: int
    fields: Mapping[str, object]


@dataclass(frozen=True, slots=True)
class ChildUpdate[TChild]:
    """Existing child and the subset of submitted fields whose value differs."""

    position: int
    target: TChild
    changes: Mapping[str, object]

    @property
    def is_noop(self) -> bool:
        return not self.changes


@dataclass(frozen=True, slots=True)
class ChildDelete[TChild]:
    position: int
    target: TChild


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationPlan[TChild]:
    """Creates, updates and deletes computed for one collection."""

    collection: str
    current_size: int
    creates: tuple[ChildCreate, ...] = ()
    updates: tuple[ChildUpdate[TChild], ...] = ()
    deletes: tuple[ChildDelete[TChild], ...] = ()
    untouched: tuple[TChild, ...] = ()
    # batch positions dropped without effect (reject_if, removal of a new row)
    skipped: tuple[int, ...] = ()

    @property
    def resulting_size(self) -> int:
        return self.current_size - len(self.deletes) + len(self.creates)

    @property
    def has_effective_changes(self) -> bool:
        if self.creates or self.deletes:
            return True
        return any(not update.is_noop for update in self.updates)

    def summary(self) -> str:
        changed = sum(1 for update in self.updates if not update.is_noop)
        return (
            f"{self.collection}: create={len(self.creates)} update={changed} "
            f"unchanged={len(self.updates) - changed} delete={len(self.deletes)} "
            f"untouched={len(self.untouched)} skipped={len(self.skipped)}"
        )
