"""Limits applied to nested attribute batches."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_positive_int


@dataclass(frozen=True, slots=True)
class NestedLimitsConfig:
    """Maximum number of rows accepted per nested batch (``None`` = unbounded)."""

    max_tasks: int | None = None
    max_memberships: int | None = None


def get_nested_limits_config() -> NestedLimitsConfig:
    return NestedLimitsConfig(
        max_tasks=optional_positive_int("NESTOR_MAX_TASKS"),
        max_memberships=optional_positive_int("NESTOR_MAX_MEMBERSHIPS"),
    )
