from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, inspect

from nestor.adapters.sqlalchemy.migrations import current_revision, head_revision, upgrade_head
from nestor.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyProjectUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from nestor.domain.model import Member, Membership, Project
from nestor.domain.reconciliation import ConcurrentModificationError, PersistenceConflictError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_sqlalchemy_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyProjectUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_repositories_require_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(StartupError):
        _ = SqlAlchemyProjectUnitOfWork().repositories


def test_unit_of_work_persists_new_children(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyProjectUnitOfWork() as uow:
        member = Member(name="Ada")
        uow.repositories.members.add(member)
        project = Project(name="Apollo")
        uow.repositories.projects.add(project)
        project.add_task(title="Design")
        project.add_membership(member)
        uow.commit()

    assert project.id is not None
    with SqlAlchemyProjectUnitOfWork() as uow:
        loaded = uow.repositories.projects.get(project.id)
        assert loaded is not None
        assert [task.title for task in loaded.tasks] == ["Design"]
        assert [m.name for m in loaded.members] == ["Ada"]


def test_children_attached_after_loading_are_inserted(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    with SqlAlchemyProjectUnitOfWork() as uow:
        project = Project(name="Apollo")
        uow.repositories.projects.add(project)
        uow.commit()
    assert project.id is not None

    with SqlAlchemyProjectUnitOfWork() as uow:
        loaded = uow.repositories.projects.get_for_update(project.id)
        assert loaded is not None
        loaded.add_task(title="Late")
        uow.commit()

    with SqlAlchemyProjectUnitOfWork() as uow:
        reloaded = uow.repositories.projects.get(project.id)
        assert reloaded is not None
        assert [task.title for task in reloaded.tasks] == ["Late"]


def test_rollback_discards_pending_changes(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyProjectUnitOfWork() as uow:
        uow.repositories.members.add(Member(name="Ada"))
        uow.rollback()

    with SqlAlchemyProjectUnitOfWork() as uow:
        assert uow.repositories.members.list_all() == ()


def test_exception_inside_unit_of_work_rolls_back(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError), SqlAlchemyProjectUnitOfWork() as uow:
        uow.repositories.members.add(Member(name="Ada"))
        uow.session.flush()
        raise RuntimeError("boom")

    with SqlAlchemyProjectUnitOfWork() as uow:
        assert uow.repositories.members.list_all() == ()


def test_duplicate_membership_rows_are_rejected_by_storage(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    with SqlAlchemyProjectUnitOfWork() as uow:
        member = Member(name="Ada")
        uow.repositories.members.add(member)
        project = Project(name="Apollo")
        uow.repositories.projects.add(project)
        uow.commit()

    with SqlAlchemyProjectUnitOfWork() as uow:
        assert project.id is not None
        loaded = uow.repositories.projects.get(project.id)
        assert loaded is not None
        # bypass the aggregate's own guard to reach the unique constraint
        Membership(_project=loaded, _member=member)
        Membership(_project=loaded, _member=member)
        with pytest.raises(PersistenceConflictError):
            uow.commit()


def test_stale_version_is_reported_as_concurrent_modification(
    sqlite_file_engine: Engine,
) -> None:
    startup(engine=sqlite_file_engine, force=True)
    with SqlAlchemyProjectUnitOfWork() as uow:
        project = Project(name="Apollo")
        uow.repositories.projects.add(project)
        uow.commit()
    assert project.id is not None

    with SqlAlchemyProjectUnitOfWork() as first:
        mine = first.repositories.projects.get(project.id)
        assert mine is not None

        with SqlAlchemyProjectUnitOfWork() as second:
            theirs = second.repositories.projects.get(project.id)
            assert theirs is not None
            theirs.name = "Theirs"
            theirs.bump_version()
            second.commit()

        mine.name = "Mine"
        mine.bump_version()
        with pytest.raises(ConcurrentModificationError):
            first.commit()

    with SqlAlchemyProjectUnitOfWork() as uow:
        stored = uow.repositories.projects.get(project.id)
        assert stored is not None
        assert stored.name == "Theirs"
        assert stored.lock_version == 1


def test_upgrade_head_is_repeatable(sqlite_engine: Engine) -> None:
    upgrade_head(engine=sqlite_engine)

    with sqlite_engine.connect() as connection:
        assert current_revision(connection) == head_revision() == "0001"
        tables = set(inspect(connection).get_table_names())

    assert {"project", "task", "member", "membership", "alembic_version"} <= tables
