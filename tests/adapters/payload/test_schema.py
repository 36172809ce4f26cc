from __future__ import annotations

import json
import logging

import pytest
from pydantic import ValidationError

from nestor.adapters.payload import (
    ProjectPayload,
    TaskAttributes,
    load_payload,
    parse_payload,
)


def test_list_rows_keep_only_submitted_keys() -> None:
    form = load_payload(
        {
            "project": {
                "name": "Apollo",
                "tasks_attributes": [
                    {"id": "1", "title": "Design", "_destroy": "1"},
                    {"title": "Launch"},
                ],
            }
        }
    )

    assert form.attributes == {"name": "Apollo"}
    assert form.tasks == [
        {"id": "1", "title": "Design", "_destroy": "1"},
        {"title": "Launch"},
    ]
    assert form.memberships is None


def test_index_keyed_rows_are_preserved_as_mapping() -> None:
    document = json.dumps(
        {
            "project": {
                "memberships_attributes": {
                    "1": {"member_id": 2, "keep": "0", "id": 7},
                    "0": {"member_id": "1", "role": "owner"},
                }
            }
        }
    )

    form = parse_payload(document)

    assert form.attributes == {}
    assert form.tasks is None
    assert form.memberships == {
        "1": {"member_id": 2, "keep": "0", "id": 7},
        "0": {"member_id": "1", "role": "owner"},
    }


def test_destroy_accepts_field_name_and_alias() -> None:
    by_alias = TaskAttributes.model_validate({"_destroy": True})
    by_name = TaskAttributes.model_validate({"destroy": "1"})

    assert by_alias.destroy is True
    assert by_name.model_dump(exclude_unset=True, by_alias=True) == {"_destroy": "1"}


def test_membership_rows_carry_the_destroy_flag(caplog: pytest.LogCaptureFixture) -> None:
    payload = {"project": {"memberships_attributes": [{"id": 7, "member_id": 2, "_destroy": "1"}]}}

    with caplog.at_level(logging.WARNING, logger="nestor.adapters.payload.schema"):
        form = load_payload(payload)

    assert form.memberships == [{"id": 7, "member_id": 2, "_destroy": "1"}]
    assert "unmodeled keys: _destroy" not in caplog.text


def test_unmodeled_keys_are_logged_once_and_passed_through(
    caplog: pytest.LogCaptureFixture,
) -> None:
    payload = {"project": {"name": "Apollo", "tasks_attributes": [{"title": "x", "owner": "eve"}]}}

    with caplog.at_level(logging.WARNING, logger="nestor.adapters.payload.schema"):
        first = load_payload(payload)
        load_payload(payload)

    assert first.tasks == [{"title": "x", "owner": "eve"}]
    assert caplog.text.count("TaskAttributes: unmodeled keys: owner") == 1


def test_project_key_is_required() -> None:
    with pytest.raises(ValidationError):
        ProjectPayload.model_validate({"tasks_attributes": []})


def test_title_must_be_text() -> None:
    with pytest.raises(ValidationError):
        load_payload({"project": {"tasks_attributes": [{"title": ["x"]}]}})
