"""
Base building blocks:
identity and tree ownership semantics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class Entity:
    """Internal identity exists immediately in the domain."""

    id: UUID = field(default_factory=new_id)


@dataclass(eq=False, kw_only=True)
class TreeEntity(Entity):
    """Entity owned by one tree and removed only logically."""

    tree_id: UUID
    is_deleted: bool = False

    @property
    def is_active(self) -> bool:
        return not self.is_deleted

    def soft_delete(self) -> None:
        self.is_deleted = True
