"""Typed attribute sets: the unit of incoming nested instructions.

Raw rows arrive as mappings (from a form, a JSON payload, or a caller). They are
turned into ``AttributeSet`` values by an explicit allow-list and coercion step
before the reconciliation core ever sees them:

- ``id`` carries the identity of an existing child (absent or blank = new)
- ``_destroy`` carries the removal flag, cast with form-boolean rules
- every other key must be permitted by the target collection, or it is dropped
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from .errors import FailureSet, FieldError, ValidationFailure, child_key

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .collection import NestedCollection

log = logging.getLogger(__name__)

IDENTITY_KEY: Final[str] = "id"
REMOVAL_KEY: Final[str] = "_destroy"
RESERVED_KEYS: Final[frozenset[str]] = frozenset({IDENTITY_KEY, REMOVAL_KEY})

_FALSE_STRINGS: Final[frozenset[str]] = frozenset({"", "0", "f", "false", "off", "n", "no"})

type RawRow = Mapping[str, object]
type RawRows = Sequence[RawRow] | Mapping[str, RawRow]


def cast_flag(value: object) -> bool:
    """Cast a submitted flag (checkbox, JSON bool, query string) to ``bool``."""

    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return True


def is_blank_value(value: object) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


@dataclass(frozen=True, slots=True, kw_only=True)
class AttributeSet:
    """Desired state of one child, as submitted at ``position`` in its batch."""

    position: int
    fields: Mapping[str, object] = field(default_factory=dict[str, object])
    identity: int | None = None
    remove: bool = False

    @property
    def is_new(self) -> bool:
        return self.identity is None

    def is_blank(self) -> bool:
        return all(is_blank_value(value) for value in self.fields.values())


type Batch = tuple[AttributeSet, ...]


def ordered_rows(rows: RawRows) -> list[RawRow]:
    """Return rows in submission order.

    Forms commonly submit nested rows as a mapping keyed by index
    (``{"0": {...}, "1": {...}}``); such mappings are ordered numerically.
    """

    if isinstance(rows, Mapping):
        try:
            indexed = sorted(
                ((int(key), row) for key, row in rows.items()), key=lambda pair: pair[0]
            )
        except ValueError as exc:
            raise ValueError("nested rows keyed by a mapping need integer keys") from exc
        return [row for _, row in indexed]
    return list(rows)


def coerce_identity(value: object) -> int | None:
    if is_blank_value(value):
        return None
    if isinstance(value, bool):
        raise TypeError("identity must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError("identity must be an integer")


def attribute_set_from_row(
    row: RawRow,
    *,
    position: int,
    collection: NestedCollection[Any, Any],
    failures: FailureSet,
) -> AttributeSet:
    """Allow-list and coerce one raw row; coercion problems are added to ``failures``."""

    key = child_key(collection.name, position)
    try:
        identity = coerce_identity(row.get(IDENTITY_KEY))
    except (TypeError, ValueError):
        failures.add(key, FieldError(IDENTITY_KEY, "is invalid"))
        identity = None

    fields: dict[str, object] = {}
    dropped: list[str] = []
    for name, value in row.items():
        if name in RESERVED_KEYS:
            continue
        if name not in collection.permitted:
            dropped.append(name)
            continue
        coercer = collection.coercers.get(name)
        if coercer is None or value is None:
            fields[name] = value
            continue
        try:
            fields[name] = coercer(value)
        except (TypeError, ValueError):
            failures.add(key, FieldError(name, "is invalid"))

    if dropped:
        log.debug("%s: dropped unpermitted keys %s", key, ", ".join(sorted(dropped)))

    return AttributeSet(
        position=position,
        fields=fields,
        identity=identity,
        remove=cast_flag(row.get(REMOVAL_KEY)),
    )


def build_batch(rows: RawRows, collection: NestedCollection[Any, Any]) -> Batch:
    """Allow-list and coerce raw rows into a ``Batch`` for ``collection``.

    Raises ``ValidationFailure`` when any permitted value cannot be coerced; the
    failures are keyed by the row's position in the batch.
    """

    failures = FailureSet()
    batch = tuple(
        attribute_set_from_row(row, position=position, collection=collection, failures=failures)
        for position, row in enumerate(ordered_rows(rows))
    )
    if failures:
        raise ValidationFailure(failures)
    return batch
