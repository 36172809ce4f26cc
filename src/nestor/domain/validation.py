"""Field-level validation of domain entities.

Validators never raise; they return the list of ``FieldError`` values so that
a nested save can report every failing entity at once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from nestor.domain.model import MembershipRole
from nestor.domain.reconciliation.errors import FieldError

if TYPE_CHECKING:
    from nestor.domain.model import Member, Membership, Project, Task

MAX_NAME_LENGTH: Final[int] = 200
MAX_TEXT_LENGTH: Final[int] = 2000


def require_text(
    value: object, field: str, *, max_length: int = MAX_NAME_LENGTH
) -> list[FieldError]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return [FieldError(field, "can't be blank")]
    return optional_text(value, field, max_length=max_length)


def optional_text(
    value: object, field: str, *, max_length: int = MAX_TEXT_LENGTH
) -> list[FieldError]:
    if value is None:
        return []
    if not isinstance(value, str):
        return [FieldError(field, "must be text")]
    if len(value) > max_length:
        return [FieldError(field, f"is too long (maximum is {max_length} characters)")]
    return []


def validate_project(project: Project) -> list[FieldError]:
    return [
        *require_text(project.name, "name"),
        *optional_text(project.description, "description"),
    ]


def validate_task(task: Task) -> list[FieldError]:
    errors = [
        *require_text(task.title, "title"),
        *optional_text(task.notes, "notes"),
    ]
    if not isinstance(task.done, bool):
        errors.append(FieldError("done", "must be true or false"))
    return errors


def validate_member(member: Member) -> list[FieldError]:
    errors = require_text(member.name, "name")
    if member.email is not None and "@" not in member.email:
        errors.append(FieldError("email", "is invalid"))
    return errors


def validate_membership(membership: Membership) -> list[FieldError]:
    errors: list[FieldError] = []
    if membership.member_id is None:
        errors.append(FieldError("member_id", "must reference a saved member"))
    if not isinstance(membership.role, MembershipRole):
        errors.append(FieldError("role", "is not included in the list"))
    return errors
