"""Application services for saving projects with nested tasks and memberships."""

from __future__ import annotations

import logging
from operator import attrgetter
from typing import TYPE_CHECKING, Final

from nestor.domain.model import Member, Membership, MembershipRole, Project
from nestor.domain.reconciliation import (
    NestedAssignment,
    NestedAttributesOptions,
    NestedCollection,
    NestedSaveResult,
    UnknownRelatedEntity,
    ValidationFailure,
    all_blank,
    apply_nested_changes,
    build_batch,
    cast_flag,
    ensure_unique_memberships,
    membership_batch,
    prepopulate,
    resolve_related,
    toggles_from_rows,
)
from nestor.domain.reconciliation.attributes import coerce_identity
from nestor.domain.reconciliation.errors import PARENT_KEY, FailureSet
from nestor.domain.validation import (
    validate_member,
    validate_membership,
    validate_project,
    validate_task,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from nestor.domain.model import Task
    from nestor.domain.ports.unit_of_work import ProjectUnitOfWork
    from nestor.domain.reconciliation import (
        MembershipPairing,
        MembershipToggle,
        ReconciliationPlan,
    )
    from nestor.domain.reconciliation.attributes import RawRows
    from nestor.domain.reconciliation.plan import ChildCreate

log = logging.getLogger(__name__)

TASKS: Final[str] = "tasks"
MEMBERSHIPS: Final[str] = "memberships"
MEMBER_KEY: Final[str] = "member_id"

PROJECT_FIELDS: Final[frozenset[str]] = frozenset({"name", "description"})
TASK_FIELDS: Final[frozenset[str]] = frozenset({"title", "notes", "done"})
MEMBERSHIP_FIELDS: Final[frozenset[str]] = frozenset({MEMBER_KEY, "role"})

type UnitOfWorkFactory = Callable[[], ProjectUnitOfWork]
type MemberLookup = Callable[[int], Member | None]


class ProjectNotFoundError(LookupError):
    """Raised when a project id does not exist."""

    def __init__(self, project_id: int) -> None:
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


def _text(value: object) -> str:
    if not isinstance(value, str):
        raise TypeError("expected text")
    return value


def _build_task(project: Project, create: ChildCreate) -> Task:
    fields = create.fields
    title = fields.get("title")
    notes = fields.get("notes")
    return project.add_task(
        title=title if isinstance(title, str) else "",
        notes=notes if isinstance(notes, str) else None,
        done=bool(fields.get("done", False)),
    )


def task_collection(*, limit: int | None = None) -> NestedCollection[Project, Task]:
    """Direct one-to-many children; fully blank rows are suppressed."""

    return NestedCollection(
        name=TASKS,
        children=attrgetter("tasks"),
        build=_build_task,
        discard=Project.remove_task,
        permitted=TASK_FIELDS,
        coercers={"title": _text, "notes": _text, "done": cast_flag},
        validate=validate_task,
        options=NestedAttributesOptions(allow_destroy=True, reject_if=all_blank, limit=limit),
    )


def membership_collection(
    members: MemberLookup,
    *,
    limit: int | None = None,
) -> NestedCollection[Project, Membership]:
    """Join rows towards members; ``members`` resolves ids for new memberships."""

    resolved: dict[int, Member] = {}

    def check(project: Project, plan: ReconciliationPlan[Membership]) -> None:
        ensure_unique_memberships(
            project.memberships,
            plan,
            related_id_of=attrgetter("member_id"),
            related_key=MEMBER_KEY,
        )
        resolved.update(resolve_related(plan, members, related_key=MEMBER_KEY))

    def build(project: Project, create: ChildCreate) -> Membership:
        member_id = create.fields.get(MEMBER_KEY)
        member = resolved.get(member_id) if isinstance(member_id, int) else None
        if member is None:
            raise UnknownRelatedEntity(MEMBERSHIPS, member_id, create.position)
        role = create.fields.get("role")
        return project.add_membership(
            member,
            role=role if isinstance(role, MembershipRole) else MembershipRole.CONTRIBUTOR,
        )

    return NestedCollection(
        name=MEMBERSHIPS,
        children=attrgetter("memberships"),
        build=build,
        discard=Project.remove_membership,
        permitted=MEMBERSHIP_FIELDS,
        coercers={MEMBER_KEY: coerce_identity, "role": MembershipRole},
        immutable=frozenset({MEMBER_KEY}),
        validate=validate_membership,
        options=NestedAttributesOptions(allow_destroy=True, limit=limit),
        check=check,
    )


def membership_pairings(
    project: Project,
    candidates: Sequence[Member],
) -> tuple[MembershipPairing[Member, Membership], ...]:
    """Pair every candidate member with the project's membership or a transient one."""

    return prepopulate(
        project.memberships,
        candidates,
        related_of=attrgetter("member"),
        build_transient=Membership.transient,
    )


def save_project(
    unit_of_work: ProjectUnitOfWork,
    project: Project,
    *,
    attributes: Mapping[str, object] | None = None,
    tasks: RawRows | None = None,
    memberships: RawRows | None = None,
    membership_toggles: Sequence[MembershipToggle] | None = None,
    max_tasks: int | None = None,
    max_memberships: int | None = None,
) -> NestedSaveResult[Project]:
    """Save ``project`` with its nested batches inside the caller's unit of work.

    ``memberships`` carries submitted form rows (``member_id``, optional ``id``,
    ``keep``, ``role``); ``membership_toggles`` carries the same intent already
    parsed, e.g. from ``toggles_from_pairings``.
    """

    if memberships is not None and membership_toggles is not None:
        raise ValueError("pass either memberships or membership_toggles, not both")

    assignments: list[NestedAssignment[Project, object]] = []
    try:
        if tasks is not None:
            tasks_coll = task_collection(limit=max_tasks)
            assignments.append(NestedAssignment(tasks_coll, build_batch(tasks, tasks_coll)))
        if memberships is not None or membership_toggles is not None:
            members_coll = membership_collection(
                unit_of_work.repositories.members.get,
                limit=max_memberships,
            )
            toggles = (
                membership_toggles
                if membership_toggles is not None
                else toggles_from_rows(
                    memberships or (), collection=MEMBERSHIPS, related_key=MEMBER_KEY
                )
            )
            batch = membership_batch(toggles, collection=members_coll, related_key=MEMBER_KEY)
            assignments.append(NestedAssignment(members_coll, batch))
    except ValidationFailure as exc:
        unit_of_work.rollback()
        log.info("Rejected nested batch: %s", exc.failures.keys())
        return NestedSaveResult(project, exc.failures)

    return apply_nested_changes(
        unit_of_work,
        project,
        attributes=attributes or {},
        permitted_attributes=PROJECT_FIELDS,
        assignments=assignments,
        validate_parent=validate_project,
    )


def update_project(
    unit_of_work_factory: UnitOfWorkFactory,
    project_id: int,
    *,
    attributes: Mapping[str, object] | None = None,
    tasks: RawRows | None = None,
    memberships: RawRows | None = None,
    membership_toggles: Sequence[MembershipToggle] | None = None,
    max_tasks: int | None = None,
    max_memberships: int | None = None,
) -> NestedSaveResult[Project]:
    """Load ``project_id`` under lock and save its fields and nested batches atomically."""

    with unit_of_work_factory() as uow:
        project = uow.repositories.projects.get_for_update(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return save_project(
            uow,
            project,
            attributes=attributes,
            tasks=tasks,
            memberships=memberships,
            membership_toggles=membership_toggles,
            max_tasks=max_tasks,
            max_memberships=max_memberships,
        )


def create_project(
    unit_of_work_factory: UnitOfWorkFactory,
    *,
    attributes: Mapping[str, object],
    tasks: RawRows | None = None,
    memberships: RawRows | None = None,
    max_tasks: int | None = None,
    max_memberships: int | None = None,
) -> NestedSaveResult[Project]:
    """Create a project together with its initial tasks and memberships."""

    with unit_of_work_factory() as uow:
        project = Project(name="")
        uow.repositories.projects.add(project)
        return save_project(
            uow,
            project,
            attributes=attributes,
            tasks=tasks,
            memberships=memberships,
            max_tasks=max_tasks,
            max_memberships=max_memberships,
        )


def create_member(
    unit_of_work_factory: UnitOfWorkFactory,
    *,
    name: str,
    email: str | None = None,
) -> Member:
    member = Member(name=name, email=email)
    errors = validate_member(member)
    if errors:
        failures = FailureSet()
        failures.extend(PARENT_KEY, errors)
        raise ValidationFailure(failures)
    with unit_of_work_factory() as uow:
        uow.repositories.members.add(member)
        uow.commit()
    return member


def get_project(unit_of_work_factory: UnitOfWorkFactory, project_id: int) -> Project:
    with unit_of_work_factory() as uow:
        project = uow.repositories.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project


def membership_form(
    unit_of_work_factory: UnitOfWorkFactory,
    project_id: int,
) -> tuple[MembershipPairing[Member, Membership], ...]:
    """Pre-populate the membership form of a project with every known member."""

    with unit_of_work_factory() as uow:
        project = uow.repositories.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return membership_pairings(project, uow.repositories.members.list_all())
