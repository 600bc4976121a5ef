"""Sex-aware kinship labels with translation keys.

A label describes person B relative to person A ("B is A's mother"). The
``key`` is a stable translation key for the UI; ``params`` carries the numbers
a translation needs (generations, cousin degree, removal, steps). ``term`` is
the English rendering, used in logs, the CLI and as a fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from kintree.domain.model import Sex

KEY_PREFIX = "relationship."
_ORDINALS = ("First", "Second", "Third", "Fourth", "Fifth", "Sixth", "Seventh", "Eighth")
_REMOVALS = {1: "once", 2: "twice", 3: "thrice"}


class RelationKind(StrEnum):
    SELF = "self"
    PARENT = "parent"
    CHILD = "child"
    SPOUSE = "spouse"
    SIBLING = "sibling"
    STEP_PARENT = "step_parent"
    STEP_CHILD = "step_child"
    STEP_SIBLING = "step_sibling"
    GRANDPARENT = "grandparent"
    GRANDCHILD = "grandchild"
    AUNT_UNCLE = "aunt_uncle"
    NIECE_NEPHEW = "niece_nephew"
    COUSIN = "cousin"
    PARENT_IN_LAW = "parent_in_law"
    CHILD_IN_LAW = "child_in_law"
    SIBLING_IN_LAW = "sibling_in_law"
    RELATED_BY_MARRIAGE = "related_by_marriage"
    RELATED = "related"

    @property
    def mirror(self) -> RelationKind:
        """Kind of A relative to B when ``self`` is B relative to A."""
        return _MIRRORS.get(self, self)


_MIRRORS = {
    RelationKind.PARENT: RelationKind.CHILD,
    RelationKind.CHILD: RelationKind.PARENT,
    RelationKind.STEP_PARENT: RelationKind.STEP_CHILD,
    RelationKind.STEP_CHILD: RelationKind.STEP_PARENT,
    RelationKind.GRANDPARENT: RelationKind.GRANDCHILD,
    RelationKind.GRANDCHILD: RelationKind.GRANDPARENT,
    RelationKind.AUNT_UNCLE: RelationKind.NIECE_NEPHEW,
    RelationKind.NIECE_NEPHEW: RelationKind.AUNT_UNCLE,
    RelationKind.PARENT_IN_LAW: RelationKind.CHILD_IN_LAW,
    RelationKind.CHILD_IN_LAW: RelationKind.PARENT_IN_LAW,
}

# kind -> (male, female, neutral) as (key suffix, English term)
_GENDERED: dict[RelationKind, tuple[tuple[str, str], tuple[str, str], tuple[str, str]]] = {
    RelationKind.SELF: (
        ("samePerson", "Same person"),
        ("samePerson", "Same person"),
        ("samePerson", "Same person"),
    ),
    RelationKind.PARENT: (("father", "Father"), ("mother", "Mother"), ("parent", "Parent")),
    RelationKind.CHILD: (("son", "Son"), ("daughter", "Daughter"), ("child", "Child")),
    RelationKind.SPOUSE: (("husband", "Husband"), ("wife", "Wife"), ("spouse", "Spouse")),
    RelationKind.SIBLING: (("brother", "Brother"), ("sister", "Sister"), ("sibling", "Sibling")),
    RelationKind.STEP_PARENT: (
        ("stepFather", "Stepfather"),
        ("stepMother", "Stepmother"),
        ("stepParent", "Step-parent"),
    ),
    RelationKind.STEP_CHILD: (
        ("stepSon", "Stepson"),
        ("stepDaughter", "Stepdaughter"),
        ("stepChild", "Stepchild"),
    ),
    RelationKind.STEP_SIBLING: (
        ("stepBrother", "Stepbrother"),
        ("stepSister", "Stepsister"),
        ("stepSibling", "Step-sibling"),
    ),
    RelationKind.GRANDPARENT: (
        ("grandfather", "Grandfather"),
        ("grandmother", "Grandmother"),
        ("grandparent", "Grandparent"),
    ),
    RelationKind.GRANDCHILD: (
        ("grandson", "Grandson"),
        ("granddaughter", "Granddaughter"),
        ("grandchild", "Grandchild"),
    ),
    RelationKind.AUNT_UNCLE: (("uncle", "Uncle"), ("aunt", "Aunt"), ("auntOrUncle", "Aunt/Uncle")),
    RelationKind.NIECE_NEPHEW: (
        ("nephew", "Nephew"),
        ("niece", "Niece"),
        ("nieceOrNephew", "Niece/Nephew"),
    ),
    RelationKind.PARENT_IN_LAW: (
        ("fatherInLaw", "Father-in-law"),
        ("motherInLaw", "Mother-in-law"),
        ("parentInLaw", "Parent-in-law"),
    ),
    RelationKind.CHILD_IN_LAW: (
        ("sonInLaw", "Son-in-law"),
        ("daughterInLaw", "Daughter-in-law"),
        ("childInLaw", "Child-in-law"),
    ),
    RelationKind.SIBLING_IN_LAW: (
        ("brotherInLaw", "Brother-in-law"),
        ("sisterInLaw", "Sister-in-law"),
        ("siblingInLaw", "Sibling-in-law"),
    ),
}


@dataclass(frozen=True, slots=True)
class KinshipLabel:
    kind: RelationKind
    key: str
    term: str
    sex: Sex = Sex.UNKNOWN
    is_half: bool = False
    params: dict[str, int] = field(default_factory=dict[str, int])

    @property
    def is_neutral(self) -> bool:
        return self.sex is Sex.UNKNOWN

    def __str__(self) -> str:
        return self.term


def great_prefix(greats: int) -> str:
    if greats <= 0:
        return ""
    if greats == 1:
        return "great-"
    if greats == 2:  # noqa: PLR2004
        return "great-great-"
    return f"{greats}x great-"


def ordinal(number: int) -> str:
    if 1 <= number <= len(_ORDINALS):
        return _ORDINALS[number - 1]
    return f"{number}th"


def removal(times: int) -> str:
    if times <= 0:
        return ""
    return f"{_REMOVALS.get(times, f'{times} times')} removed"


def _pick(kind: RelationKind, sex: Sex) -> tuple[str, str]:
    male, female, neutral = _GENDERED[kind]
    if sex is Sex.MALE:
        return male
    if sex is Sex.FEMALE:
        return female
    return neutral


def _capitalized(text: str) -> str:
    return text[:1].upper() + text[1:]


def make_label(
    kind: RelationKind,
    sex: Sex,
    *,
    greats: int = 0,
    is_half: bool = False,
) -> KinshipLabel:
    """Label for the gendered kinds; ``greats`` lengthens lineal and collateral terms."""

    if kind in {RelationKind.COUSIN, RelationKind.RELATED, RelationKind.RELATED_BY_MARRIAGE}:
        raise ValueError(f"{kind} needs its own label builder")
    suffix, term = _pick(kind, sex)
    if kind is RelationKind.SELF:
        sex = Sex.UNKNOWN
    params: dict[str, int] = {}
    if greats:
        params["greats"] = greats
        suffix = "great" + _capitalized(suffix)
        term = _capitalized(great_prefix(greats) + term.lower())
    if is_half:
        suffix = "half" + _capitalized(suffix)
        term = "Half-" + term.lower()
    return KinshipLabel(
        kind=kind,
        key=KEY_PREFIX + suffix,
        term=term,
        sex=sex,
        is_half=is_half,
        params=params,
    )


def cousin_label(degree: int, removed: int) -> KinshipLabel:
    term = f"{ordinal(degree)} cousin"
    if removed:
        term = f"{term} {removal(removed)}"
    return KinshipLabel(
        kind=RelationKind.COUSIN,
        key=KEY_PREFIX + "cousin",
        term=term,
        params={"degree": degree, "removed": removed},
    )


def related_by_marriage_label() -> KinshipLabel:
    return KinshipLabel(
        kind=RelationKind.RELATED_BY_MARRIAGE,
        key=KEY_PREFIX + "relatedByMarriage",
        term="Related by marriage",
    )


def related_label(steps: int) -> KinshipLabel:
    return KinshipLabel(
        kind=RelationKind.RELATED,
        key=KEY_PREFIX + "related",
        term=f"Related ({steps} steps)",
        params={"steps": steps},
    )
