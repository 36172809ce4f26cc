"""
Base building blocks:
storage-assigned identity and the entity_type contract.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from nestor.domain.model.enums import EntityType


@dataclass(eq=False, kw_only=True)
class Entity:
    """Identity is assigned by storage on insert; ``None`` means not yet persisted."""

    id: int | None = None

    # class-level discriminator; subclasses must override
    ENTITY_TYPE: ClassVar[EntityType]

    @property
    def entity_type(self) -> EntityType:
        return self.ENTITY_TYPE

    @property
    def is_new(self) -> bool:
        return self.id is None
