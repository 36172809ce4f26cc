"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from nestor.adapters.payload import load_payload
from nestor.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyProjectUnitOfWork,
    is_started,
    startup,
)
from nestor.config import get_nested_limits_config
from nestor.domain import project_updates
from nestor.domain.ports.unit_of_work import ProjectUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Mapping

    from nestor.domain.model import Member, Membership, Project
    from nestor.domain.reconciliation import MembershipPairing, NestedSaveResult

UnitOfWorkFactory = Callable[[], ProjectUnitOfWork]


log = getLogger(__name__)


def _default_unit_of_work_factory() -> UnitOfWorkFactory:
    if not is_started():
        startup()
    return SqlAlchemyProjectUnitOfWork


def create_member(
    *,
    name: str,
    email: str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Member:
    """Persist a member that projects can later reference by id."""

    factory = unit_of_work_factory or _default_unit_of_work_factory()
    member = project_updates.create_member(factory, name=name, email=email)
    log.info("Created member %s", member.id)
    return member


def create_project(
    payload: Mapping[str, object],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> NestedSaveResult[Project]:
    """Create a project from a JSON form payload, nested rows included."""

    factory = unit_of_work_factory or _default_unit_of_work_factory()
    form = load_payload(payload)
    limits = get_nested_limits_config()
    return project_updates.create_project(
        factory,
        attributes=form.attributes,
        tasks=form.tasks,
        memberships=form.memberships,
        max_tasks=limits.max_tasks,
        max_memberships=limits.max_memberships,
    )


def update_project(
    project_id: int,
    payload: Mapping[str, object],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> NestedSaveResult[Project]:
    """Apply a JSON form payload to an existing project in one transaction."""

    factory = unit_of_work_factory or _default_unit_of_work_factory()
    form = load_payload(payload)
    limits = get_nested_limits_config()
    return project_updates.update_project(
        factory,
        project_id,
        attributes=form.attributes,
        tasks=form.tasks,
        memberships=form.memberships,
        max_tasks=limits.max_tasks,
        max_memberships=limits.max_memberships,
    )


def show_project(
    project_id: int,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Project:
    factory = unit_of_work_factory or _default_unit_of_work_factory()
    return project_updates.get_project(factory, project_id)


def membership_form(
    project_id: int,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> tuple[MembershipPairing[Member, Membership], ...]:
    factory = unit_of_work_factory or _default_unit_of_work_factory()
    return project_updates.membership_form(factory, project_id)
