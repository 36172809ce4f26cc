"""Project aggregate. Ownership lives on the aggregate root.

Aggregate root here:
- Project owns Task (1:n) and Membership (1:n, join rows towards Member)

Member is independently owned and never mutated through a project.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from nestor.domain.model.entity import Entity
from nestor.domain.model.enums import EntityType, MembershipRole


@dataclass(eq=False, kw_only=True)
class Member(Entity):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.MEMBER

    name: str
    email: str | None = None


@dataclass(eq=False, kw_only=True)
class Project(Entity):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.PROJECT

    name: str
    description: str | None = None

    # optimistic concurrency token, bumped on every effective nested save
    lock_version: int = 0

    # Owned children
    _tasks: list[Task] = field(default_factory=list["Task"], repr=False)
    _memberships: list[Membership] = field(default_factory=list["Membership"], repr=False)

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def memberships(self) -> tuple[Membership, ...]:
        return tuple(self._memberships)

    @property
    def members(self) -> tuple[Member, ...]:
        return tuple(m.member for m in self._memberships)

    def bump_version(self) -> None:
        self.lock_version += 1

    # Commands (ownership here)
    def add_task(
        self,
        *,
        title: str,
        notes: str | None = None,
        done: bool = False,
    ) -> Task:
        task = Task(_project=self, title=title, notes=notes, done=done)
        # the ORM backref may already have appended it
        if task not in self._tasks:
            self._tasks.append(task)
        return task

    def remove_task(self, task: Task) -> None:
        if task not in self._tasks:
            raise ValueError("task not owned by project")
        self._tasks.remove(task)

    def membership_for(self, member: Member) -> Membership | None:
        for membership in self._memberships:
            if membership.member is member:
                return membership
            if member.id is not None and membership.member_id == member.id:
                return membership
        return None

    def add_membership(
        self,
        member: Member,
        *,
        role: MembershipRole = MembershipRole.CONTRIBUTOR,
    ) -> Membership:
        if self.membership_for(member) is not None:
            raise ValueError("member already belongs to project")
        membership = Membership(_project=self, _member=member, role=role)
        if membership not in self._memberships:
            self._memberships.append(membership)
        return membership

    def remove_membership(self, membership: Membership) -> None:
        if membership not in self._memberships:
            raise ValueError("membership not owned by project")
        self._memberships.remove(membership)


@dataclass(eq=False, kw_only=True)
class Task(Entity):
    ENTITY_TYPE: ClassVar[EntityType] = EntityType.TASK

    _project: Project = field(repr=False)

    title: str
    notes: str | None = None
    done: bool = False

    @property
    def project(self) -> Project:
        return self._project


@dataclass(eq=False, kw_only=True)
class Membership(Entity):
    """Join row between a project and a member.

    A membership without a project is transient: it was synthesised for a form
    and is not part of any project's collection.
    """

    ENTITY_TYPE: ClassVar[EntityType] = EntityType.MEMBERSHIP

    _member: Member = field(repr=False)
    _project: Project | None = field(default=None, repr=False)

    role: MembershipRole = MembershipRole.CONTRIBUTOR

    @property
    def member(self) -> Member:
        return self._member

    @property
    def member_id(self) -> int | None:
        return self._member.id

    @property
    def project(self) -> Project | None:
        return self._project

    @classmethod
    def transient(
        cls,
        member: Member,
        *,
        role: MembershipRole = MembershipRole.CONTRIBUTOR,
    ) -> Membership:
        """Build an unattached membership, e.g. to pre-populate an edit form."""
        return cls(_member=member, role=role)
