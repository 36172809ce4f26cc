"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from nestor.domain.model import Member, Project

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def get(self, entity_id: int) -> TEntity | None: ...


@runtime_checkable
class ProjectRepository(Repository[Project], Protocol):
    """Persistence contract for projects and their owned collections."""

    def get_for_update(self, project_id: int) -> Project | None:
        """Load a project and lock it against concurrent nested saves."""
        ...


@runtime_checkable
class MemberRepository(Repository[Member], Protocol):
    """Persistence contract for members."""

    def list_all(self) -> Sequence[Member]: ...
