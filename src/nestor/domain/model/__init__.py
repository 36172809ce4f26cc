"""Public domain model surface."""

from __future__ import annotations

from nestor.domain.model.entity import Entity
from nestor.domain.model.enums import EntityType, MembershipRole
from nestor.domain.model.project import Member, Membership, Project, Task

__all__ = [
    "Entity",
    "EntityType",
    "Member",
    "Membership",
    "MembershipRole",
    "Project",
    "Task",
]
