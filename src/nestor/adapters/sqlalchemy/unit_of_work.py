"""SQLAlchemy-backed unit of work for nested project saves."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from nestor.adapters.sqlalchemy.mappings import start_mappers
from nestor.adapters.sqlalchemy.migrations import upgrade_head
from nestor.adapters.sqlalchemy.repositories import (
    SqlAlchemyMemberRepository,
    SqlAlchemyProjectRepository,
)
from nestor.config import DatabaseConfig, get_database_config
from nestor.domain.ports.unit_of_work import ProjectRepositories, RepositoryCollection
from nestor.domain.reconciliation import ConcurrentModificationError, PersistenceConflictError

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call nestor.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            # nothing may reach the database before the whole batch validated
            self._session_factory = sessionmaker(
                bind=self._engine,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory


_STATE = _AdapterState()


def _build_engine(database_uri: str | None) -> Engine:
    database = get_database_config()
    if database_uri is not None:
        database = DatabaseConfig(
            uri=database_uri, echo=database.echo, lock_timeout=database.lock_timeout
        )
    log.info("Connecting to %s", make_url(database.uri).render_as_string(hide_password=True))
    return create_engine(database.uri, future=True, **database.engine_options())


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, schema, and session factory.

    ``engine`` wins over ``database_uri``, which wins over the configured
    ``DATABASE_URI`` / data directory.
    """

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or _build_engine(database_uri)
    start_mappers()
    upgrade_head(engine=resolved_engine)
    _STATE.engine = resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def _before_commit(self) -> None:  # noqa: B027
        """Hook for subclasses to stage pending objects ahead of the flush."""

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        """Flush and commit; storage-level rejections roll back and re-raise as domain errors."""

        self._before_commit()
        try:
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            log.warning("Commit rejected, row changed concurrently: %s", exc)
            raise ConcurrentModificationError(str(exc)) from exc
        except IntegrityError as exc:
            self.session.rollback()
            log.warning("Commit rejected by storage constraints: %s", exc.orig)
            raise PersistenceConflictError(str(exc.orig)) from exc

    def rollback(self) -> None:
        """Discard every pending change, including in-memory mutations of loaded objects."""
        self.session.rollback()
        log.debug("Rolled back unit of work")

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyProjectUnitOfWork(BaseSqlAlchemyUnitOfWork[ProjectRepositories]):
    """Unit of work managing SQLAlchemy sessions for projects and members."""

    def _build_repositories(self, session: Session) -> ProjectRepositories:
        self._projects = SqlAlchemyProjectRepository(session)
        return ProjectRepositories(
            projects=self._projects,
            members=SqlAlchemyMemberRepository(session),
        )

    def _before_commit(self) -> None:
        self._projects.cascade_children()


if TYPE_CHECKING:
    from nestor.domain.ports.unit_of_work import ProjectUnitOfWork

    _uow_check: ProjectUnitOfWork = SqlAlchemyProjectUnitOfWork()
