"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from sqlalchemy.orm import Session  # noqa: TC002

from nestor.adapters.sqlalchemy.repositories import (
    SqlAlchemyMemberRepository,
    SqlAlchemyProjectRepository,
)
from nestor.domain.model import Member, MembershipRole, Project


def _seed(session: Session) -> tuple[Project, Member, Member]:
    ada = Member(name="Ada", email="ada@example.org")
    grace = Member(name="Grace")
    project = Project(name="Apollo", description="Moon")
    session.add_all([ada, grace, project])
    project.add_task(title="Design")
    project.add_task(title="Build", done=True)
    project.add_membership(grace, role=MembershipRole.OWNER)
    session.add(project)
    session.commit()
    return project, ada, grace


def test_member_repository_lists_members_in_id_order(sqlite_session: Session) -> None:
    repository = SqlAlchemyMemberRepository(sqlite_session)
    first = Member(name="First")
    second = Member(name="Second")

    repository.add(first)
    repository.add(second)
    sqlite_session.commit()

    assert [member.name for member in repository.list_all()] == ["First", "Second"]
    assert first.id is not None
    assert repository.get(first.id) is first
    assert repository.get(9999) is None


def test_project_repository_loads_the_aggregate(sqlite_session: Session) -> None:
    project, _, grace = _seed(sqlite_session)
    assert project.id is not None
    sqlite_session.expunge_all()
    repository = SqlAlchemyProjectRepository(sqlite_session)

    loaded = repository.get(project.id)

    assert loaded is not None
    assert loaded is not project
    assert loaded.description == "Moon"
    assert [(task.title, task.done) for task in loaded.tasks] == [
        ("Design", False),
        ("Build", True),
    ]
    (membership,) = loaded.memberships
    assert membership.member_id == grace.id
    assert membership.role is MembershipRole.OWNER
    assert membership.project is loaded


def test_project_repository_get_for_update(sqlite_session: Session) -> None:
    project, _, _ = _seed(sqlite_session)
    assert project.id is not None
    repository = SqlAlchemyProjectRepository(sqlite_session)

    assert repository.get_for_update(project.id) is project
    assert repository.get_for_update(project.id + 1) is None


def test_cascade_children_stages_children_attached_after_load(sqlite_session: Session) -> None:
    project, _, _ = _seed(sqlite_session)
    assert project.id is not None
    sqlite_session.expunge_all()
    repository = SqlAlchemyProjectRepository(sqlite_session)
    loaded = repository.get(project.id)
    assert loaded is not None

    task = loaded.add_task(title="Launch")
    repository.cascade_children()

    assert task in sqlite_session.new
