"""SQLAlchemy mapping metadata for the project aggregate."""

from __future__ import annotations

import logging
from functools import cache

from sqlalchemy import (
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from nestor.domain.model import Member, Membership, MembershipRole, Project, Task

log = logging.getLogger(__name__)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

project_table = Table(
    "project",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("description", Text, nullable=True),
    Column("lock_version", Integer, nullable=False, default=0),
)

member_table = Table(
    "member",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("email", String(200), nullable=True),
)

task_table = Table(
    "task",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "project_id",
        Integer,
        ForeignKey("project.id", ondelete="CASCADE"),
        key="_project_id",
        nullable=False,
        index=True,
    ),
    Column("title", String(200), nullable=False),
    Column("notes", Text, nullable=True),
    Column("done", Boolean, nullable=False, default=False),
)

membership_table = Table(
    "membership",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "project_id",
        Integer,
        ForeignKey("project.id", ondelete="CASCADE"),
        key="_project_id",
        nullable=False,
    ),
    Column(
        "member_id",
        Integer,
        ForeignKey("member.id", ondelete="CASCADE"),
        key="_member_id",
        nullable=False,
        index=True,
    ),
    Column("role", Enum(MembershipRole, native_enum=False), nullable=False),
    UniqueConstraint("_project_id", "_member_id", name="uq_membership_project_member"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the project aggregate."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Project,
        project_table,
        properties={
            "_tasks": relationship(
                Task,
                back_populates="_project",
                cascade="all, delete-orphan",
                order_by=task_table.c.id,
            ),
            "_memberships": relationship(
                Membership,
                back_populates="_project",
                cascade="all, delete-orphan",
                order_by=membership_table.c.id,
            ),
        },
        # the domain bumps the token itself, only on effective changes
        version_id_col=project_table.c.lock_version,
        version_id_generator=False,
    )

    mapper_registry.map_imperatively(
        Task,
        task_table,
        properties={
            "_project": relationship(
                Project,
                back_populates="_tasks",
            ),
        },
    )

    mapper_registry.map_imperatively(
        Member,
        member_table,
    )

    # one-way towards Member: a transient membership must never be cascaded
    # into the session through its member
    mapper_registry.map_imperatively(
        Membership,
        membership_table,
        properties={
            "_project": relationship(
                Project,
                back_populates="_memberships",
            ),
            "_member": relationship(Member, lazy="joined"),
        },
    )

    configure_mappers()
    return mapper_registry
