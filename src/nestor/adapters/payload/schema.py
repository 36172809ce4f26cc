"""Pydantic models for nested project form payloads.

Row values stay close to what a form submits (strings, numbers, flags); the
reconciliation layer owns coercion so that failures are reported per row.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

type FormScalar = str | int | bool | None


class PayloadBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.warning(
            "Payload %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class TaskAttributes(PayloadBaseModel):
    id: int | str | None = None
    title: str | None = None
    notes: str | None = None
    done: FormScalar = None
    destroy: FormScalar = Field(default=None, alias="_destroy")


class MembershipAttributes(PayloadBaseModel):
    id: int | str | None = None
    member_id: int | str | None = None
    keep: FormScalar = None
    destroy: FormScalar = Field(default=None, alias="_destroy")
    role: str | None = None


class ProjectAttributes(PayloadBaseModel):
    name: str | None = None
    description: str | None = None
    tasks_attributes: list[TaskAttributes] | dict[str, TaskAttributes] | None = None
    memberships_attributes: (
        list[MembershipAttributes] | dict[str, MembershipAttributes] | None
    ) = None


class ProjectPayload(PayloadBaseModel):
    project: ProjectAttributes
