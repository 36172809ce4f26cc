"""Per-collection switches for nested attribute handling."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .attributes import AttributeSet

type RejectIf = Callable[[AttributeSet], bool]


def all_blank(attributes: AttributeSet) -> bool:
    """Reject rows whose every submitted field is empty."""
    return attributes.is_blank()


@dataclass(frozen=True, slots=True, kw_only=True)
class NestedAttributesOptions:
    """How one collection treats its incoming batch.

    ``allow_destroy`` off turns removal flags on existing rows into plain updates.
    ``reject_if`` silently drops matching rows that carry no identity.
    ``limit`` caps the number of rows a single batch may carry.
    """

    allow_destroy: bool = True
    reject_if: RejectIf | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit <= 0:
            raise ValueError("limit must be positive")


DEFAULT_OPTIONS = NestedAttributesOptions()
