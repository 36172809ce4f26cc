"""Translate parsed form payloads into the raw rows the domain saves."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .schema import ProjectPayload

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from pydantic import BaseModel

    from nestor.domain.reconciliation.attributes import RawRow, RawRows

_NESTED_KEYS = frozenset({"tasks_attributes", "memberships_attributes"})


@dataclass(frozen=True, slots=True)
class ProjectForm:
    """Parent scalars plus nested rows, ``None`` where a collection was not submitted."""

    attributes: dict[str, object]
    tasks: RawRows | None
    memberships: RawRows | None


def _row(model: BaseModel) -> RawRow:
    # only submitted keys: an omitted field must never overwrite stored state
    return model.model_dump(exclude_unset=True, by_alias=True)


def _rows(value: Sequence[BaseModel] | Mapping[str, BaseModel] | None) -> RawRows | None:
    if value is None:
        return None
    if isinstance(value, list):
        return [_row(item) for item in value]
    return {key: _row(item) for key, item in value.items()}


def translate_payload(payload: ProjectPayload) -> ProjectForm:
    project = payload.project
    attributes = {
        key: value
        for key, value in project.model_dump(exclude_unset=True).items()
        if key not in _NESTED_KEYS
    }
    return ProjectForm(
        attributes=attributes,
        tasks=_rows(project.tasks_attributes),
        memberships=_rows(project.memberships_attributes),
    )


def parse_payload(document: str | bytes) -> ProjectForm:
    """Validate a JSON document and translate it in one step."""

    return translate_payload(ProjectPayload.model_validate_json(document))


def load_payload(data: Mapping[str, object]) -> ProjectForm:
    return translate_payload(ProjectPayload.model_validate(data))

