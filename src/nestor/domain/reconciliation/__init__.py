"""Nested-collection reconciliation.

Layered flow for one parent save:
1) build typed batches from raw rows (allow-list + coercion)
2) plan each collection: identity matching and diff, no mutation
3) run collection checks (e.g. join uniqueness)
4) apply plans to the in-memory aggregate and validate every touched entity
5) commit once, or roll everything back and report failures per entity
"""

from __future__ import annotations

from .apply import ApplyResult, apply_plan, validate_applied
from .attributes import (
    IDENTITY_KEY,
    REMOVAL_KEY,
    AttributeSet,
    Batch,
    build_batch,
    cast_flag,
)
from .collection import NestedCollection
from .core import reconcile
from .errors import (
    PARENT_KEY,
    ConcurrentModificationError,
    DuplicateChildReference,
    DuplicateMembership,
    FailureSet,
    FieldError,
    PersistenceConflictError,
    ReconciliationError,
    TooManyRecords,
    UnknownChildReference,
    UnknownRelatedEntity,
    ValidationFailure,
)
from .join import (
    MembershipPairing,
    MembershipToggle,
    ensure_unique_memberships,
    membership_batch,
    prepopulate,
    resolve_related,
    toggles_from_pairings,
    toggles_from_rows,
)
from .options import DEFAULT_OPTIONS, NestedAttributesOptions, all_blank
from .persist import NestedAssignment, NestedSaveResult, apply_nested_changes
from .plan import ChildCreate, ChildDelete, ChildUpdate, ReconciliationPlan

__all__ = [
    "DEFAULT_OPTIONS",
    "IDENTITY_KEY",
    "PARENT_KEY",
    "REMOVAL_KEY",
    "ApplyResult",
    "AttributeSet",
    "Batch",
    "ChildCreate",
    "ChildDelete",
    "ChildUpdate",
    "ConcurrentModificationError",
    "DuplicateChildReference",
    "DuplicateMembership",
    "FailureSet",
    "FieldError",
    "MembershipPairing",
    "MembershipToggle",
    "NestedAssignment",
    "NestedAttributesOptions",
    "NestedCollection",
    "NestedSaveResult",
    "PersistenceConflictError",
    "ReconciliationError",
    "ReconciliationPlan",
    "TooManyRecords",
    "UnknownChildReference",
    "UnknownRelatedEntity",
    "ValidationFailure",
    "all_blank",
    "apply_nested_changes",
    "apply_plan",
    "build_batch",
    "cast_flag",
    "ensure_unique_memberships",
    "membership_batch",
    "prepopulate",
    "reconcile",
    "resolve_related",
    "toggles_from_pairings",
    "toggles_from_rows",
    "validate_applied",
]
