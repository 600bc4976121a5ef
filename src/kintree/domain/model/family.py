"""People and the edges connecting them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .entity import Entity, TreeEntity
from .enums import (
    ParentChildType,
    PersonLinkStatus,
    PersonLinkType,
    Sex,
    UnionType,
)
from .primitives import year_of

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID

    from .primitives import FuzzyDate

PARTNER_ROLE = "partner"


@dataclass(eq=False, kw_only=True)
class Person(TreeEntity):
    sex: Sex = Sex.UNKNOWN
    primary_name: str | None = None
    name_arabic: str | None = None
    name_english: str | None = None
    name_nobiin: str | None = None
    family_id: UUID | None = None
    birth: FuzzyDate | None = None
    death: FuzzyDate | None = None

    @property
    def comparison_name(self) -> str | None:
        """First non-blank localized name, Arabic script preferred."""
        for candidate in (self.name_arabic, self.primary_name, self.name_english, self.name_nobiin):
            if candidate is not None and candidate.strip():
                return candidate.strip()
        return None

    @property
    def display_name(self) -> str:
        for candidate in (self.primary_name, self.name_english, self.name_arabic, self.name_nobiin):
            if candidate is not None and candidate.strip():
                return candidate.strip()
        return str(self.id)

    @property
    def birth_year(self) -> int | None:
        return year_of(self.birth)


@dataclass(eq=False, kw_only=True)
class ParentChildEdge(TreeEntity):
    parent_id: UUID
    child_id: UUID
    relationship_type: ParentChildType = ParentChildType.BIOLOGICAL
    created_by: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def is_biological(self) -> bool:
        return self.relationship_type is ParentChildType.BIOLOGICAL


@dataclass(eq=False, kw_only=True)
class UnionMember(Entity):
    person_id: UUID
    role: str = PARTNER_ROLE
    position: int = 0


@dataclass(eq=False, kw_only=True)
class Union(TreeEntity):
    """Undirected partnership grouping; may have more than two members."""

    union_type: UnionType = UnionType.MARRIAGE
    start: FuzzyDate | None = None
    end: FuzzyDate | None = None
    members: list[UnionMember] = field(default_factory=list["UnionMember"])
    created_by: str | None = None

    def add_member(self, person_id: UUID, *, role: str = PARTNER_ROLE) -> UnionMember:
        member = UnionMember(person_id=person_id, role=role, position=len(self.members))
        self.members.append(member)
        return member

    @property
    def member_ids(self) -> tuple[UUID, ...]:
        ordered = sorted(self.members, key=lambda member: member.position)
        return tuple(member.person_id for member in ordered)

    def spans(self, day: date) -> bool | None:
        """Whether ``day`` falls inside the union's dates; None without a start date."""
        if self.start is None or self.start.value is None:
            return None
        if day < self.start.value:
            return False
        end = self.end.value if self.end is not None else None
        return end is None or day <= end


@dataclass(eq=False, kw_only=True)
class PersonLink(Entity):
    """A reviewer decision about a pair of person records."""

    tree_id: UUID
    person_a_id: UUID
    person_b_id: UUID
    link_type: PersonLinkType = PersonLinkType.SAME_PERSON
    status: PersonLinkStatus = PersonLinkStatus.PENDING
    created_by: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def pair(self) -> frozenset[UUID]:
        return frozenset((self.person_a_id, self.person_b_id))
