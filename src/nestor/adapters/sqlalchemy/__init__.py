"""SQLAlchemy adapter package for nestor."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import SqlAlchemyMemberRepository, SqlAlchemyProjectRepository
from .unit_of_work import (
    SqlAlchemyProjectUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyMemberRepository",
    "SqlAlchemyProjectRepository",
    "SqlAlchemyProjectUnitOfWork",
    "StartupError",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
