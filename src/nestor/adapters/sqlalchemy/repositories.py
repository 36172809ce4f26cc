"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from nestor.adapters.sqlalchemy.mappings import member_table, project_table
from nestor.domain.model import Member, Membership, Project

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.orm import Session
    from sqlalchemy.sql import Select


def _project_graph() -> Select[tuple[Project]]:
    # imperative mappings expose the relationships only at runtime
    tasks = cast("Any", Project)._tasks  # noqa: SLF001
    memberships = cast("Any", Project)._memberships  # noqa: SLF001
    member = cast("Any", Membership)._member  # noqa: SLF001
    return select(Project).options(
        selectinload(tasks),
        selectinload(memberships).joinedload(member),
    )


class SqlAlchemyProjectRepository:
    def __init__(self, session: Session) -> None:
        self.session = session
        self._aggregates: list[Project] = []

    def add(self, entity: Project) -> None:
        self.session.add(entity)
        self._track(entity)

    def get(self, entity_id: int) -> Project | None:
        stmt = _project_graph().where(project_table.c.id == entity_id)
        return self._track(self.session.execute(stmt).scalar_one_or_none())

    def get_for_update(self, project_id: int) -> Project | None:
        """Row-lock the project where the dialect supports ``FOR UPDATE``."""

        stmt = _project_graph().where(project_table.c.id == project_id).with_for_update()
        return self._track(self.session.execute(stmt).scalar_one_or_none())

    def cascade_children(self) -> None:
        """Re-add loaded aggregates so children attached since then reach the session.

        Children are attached from their own side (``Task(_project=...)``), and
        backref events do not cascade ``save-update`` into the session.
        """

        for project in self._aggregates:
            self.session.add(project)

    def _track(self, project: Project | None) -> Project | None:
        if project is not None and project not in self._aggregates:
            self._aggregates.append(project)
        return project


class SqlAlchemyMemberRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Member) -> None:
        self.session.add(entity)

    def get(self, entity_id: int) -> Member | None:
        return self.session.get(Member, entity_id)

    def list_all(self) -> Sequence[Member]:
        stmt = select(Member).order_by(member_table.c.id)
        return tuple(self.session.execute(stmt).scalars())
