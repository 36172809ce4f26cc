from __future__ import annotations

from dataclasses import dataclass

import pytest

from nestor.domain.reconciliation import (
    AttributeSet,
    DuplicateChildReference,
    NestedAttributesOptions,
    TooManyRecords,
    UnknownChildReference,
    all_blank,
    reconcile,
)


@dataclass(eq=False)
class Child:
    id: int | None
    name: str
    done: bool = False


def row(
    position: int,
    *,
    identity: int | None = None,
    remove: bool = False,
    **fields: object,
) -> AttributeSet:
    return AttributeSet(position=position, fields=fields, identity=identity, remove=remove)


def test_update_and_create_in_one_batch() -> None:
    a = Child(1, "A")

    plan = reconcile([a], (row(0, identity=1, name="A2"), row(1, name="B")))

    assert [(u.target, dict(u.changes)) for u in plan.updates] == [(a, {"name": "A2"})]
    assert [dict(c.fields) for c in plan.creates] == [{"name": "B"}]
    assert plan.deletes == ()
    assert plan.resulting_size == 2


def test_destroy_flag_deletes_and_leaves_others_untouched() -> None:
    first, second = Child(1, "A"), Child(2, "B")

    plan = reconcile([first, second], (row(0, identity=1, remove=True),))

    assert [d.target for d in plan.deletes] == [first]
    assert plan.untouched == (second,)
    assert plan.resulting_size == 1


def test_unknown_identity_aborts_before_planning() -> None:
    with pytest.raises(UnknownChildReference) as excinfo:
        reconcile([Child(1, "A")], (row(0, identity=999, name="X"),), collection="tasks")

    assert excinfo.value.identity == 999
    assert excinfo.value.position == 0
    assert "tasks[0]" in str(excinfo.value)


def test_repeated_identity_is_rejected() -> None:
    with pytest.raises(DuplicateChildReference) as excinfo:
        reconcile(
            [Child(1, "A")],
            (row(0, identity=1, name="x"), row(1, identity=1, remove=True)),
        )

    assert excinfo.value.positions == (0, 1)


def test_omitted_children_are_untouched_not_deleted() -> None:
    children = [Child(1, "A"), Child(2, "B"), Child(3, "C")]

    plan = reconcile(children, (row(0, identity=2, name="B2"),))

    assert plan.deletes == ()
    assert plan.untouched == (children[0], children[2])


def test_identical_values_yield_noop_update() -> None:
    child = Child(1, "A", done=True)

    plan = reconcile([child], (row(0, identity=1, name="A", done=True),))

    assert len(plan.updates) == 1
    assert plan.updates[0].is_noop
    assert not plan.has_effective_changes


def test_new_row_with_destroy_flag_is_skipped() -> None:
    plan = reconcile([], (row(0, remove=True, name="ghost"),))

    assert plan.creates == ()
    assert plan.skipped == (0,)
    assert not plan.has_effective_changes


def test_destroy_ignored_when_not_allowed() -> None:
    child = Child(1, "A")
    options = NestedAttributesOptions(allow_destroy=False)

    plan = reconcile([child], (row(0, identity=1, remove=True, name="A3"),), options=options)

    assert plan.deletes == ()
    assert dict(plan.updates[0].changes) == {"name": "A3"}


def test_reject_if_skips_blank_rows_but_honours_removal() -> None:
    child = Child(1, "A")
    options = NestedAttributesOptions(reject_if=all_blank)

    plan = reconcile(
        [child],
        (row(0, name="  "), row(1, identity=1, remove=True, name=""), row(2, name="C")),
        options=options,
    )

    assert plan.skipped == (0,)
    assert [d.target for d in plan.deletes] == [child]
    assert [c.position for c in plan.creates] == [2]


def test_reject_if_leaves_identified_rows_to_validation() -> None:
    child = Child(1, "A")
    options = NestedAttributesOptions(reject_if=all_blank)

    plan = reconcile([child], (row(0, identity=1, name=""),), options=options)

    assert plan.skipped == ()
    assert [(u.target, dict(u.changes)) for u in plan.updates] == [(child, {"name": ""})]


def test_limit_counts_every_submitted_row() -> None:
    options = NestedAttributesOptions(limit=2)

    with pytest.raises(TooManyRecords) as excinfo:
        reconcile([], (row(0, name="a"), row(1, name="b"), row(2, name="c")), options=options)

    assert excinfo.value.limit == 2
    assert excinfo.value.size == 3


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError, match="positive"):
        NestedAttributesOptions(limit=0)


def test_creates_keep_batch_order() -> None:
    plan = reconcile([], (row(0, name="x"), row(1, name="y"), row(2, name="z")))

    assert [c.fields["name"] for c in plan.creates] == ["x", "y", "z"]
    assert [c.position for c in plan.creates] == [0, 1, 2]


type RowSpec = tuple[int | None, bool, str]

PLAN_CASES: list[list[RowSpec]] = [
    [],
    [(1, False, "A2"), (None, False, "new")],
    [(2, True, ""), (3, False, "C")],
    [(1, True, ""), (2, True, "")],
    [(None, False, "n1"), (None, False, "n2"), (3, False, "C2")],
]


@pytest.mark.parametrize("specs", PLAN_CASES)
def test_plan_accounts_for_every_current_child(specs: list[RowSpec]) -> None:
    current = [Child(1, "A"), Child(2, "B"), Child(3, "C")]
    rows = tuple(
        row(position, identity=identity, remove=remove, name=name)
        for position, (identity, remove, name) in enumerate(specs)
    )

    plan = reconcile(current, rows)

    kept = len(plan.updates) + len(plan.untouched)
    assert kept == len(current) - len(plan.deletes)
    assert kept + len(plan.creates) == plan.resulting_size


def test_summary_counts_effective_updates() -> None:
    plan = reconcile(
        [Child(1, "A"), Child(2, "B")],
        (row(0, identity=1, name="A"), row(1, identity=2, name="B2")),
        collection="tasks",
    )

    assert plan.summary() == (
        "tasks: create=0 update=1 unchanged=1 delete=0 untouched=0 skipped=0"
    )
