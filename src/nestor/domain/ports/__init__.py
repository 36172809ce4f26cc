"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import MemberRepository, ProjectRepository, Repository
from .unit_of_work import (
    ProjectRepositories,
    ProjectUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "MemberRepository",
    "ProjectRepositories",
    "ProjectRepository",
    "ProjectUnitOfWork",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
]
