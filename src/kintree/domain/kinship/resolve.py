"""Kinship resolver: classify how person B is related to person A.

Resolution runs in two tiers. Direct patterns (parent, sibling, cousin, step
and in-law relations, ...) are answered from the view's adjacency indexes.
When none matches within ``max_depth`` a breadth-first search over parent,
child and spouse edges finds the shortest path, which is then named from its
shape (great-grandparents, cousins removed, relations by marriage) or reported
as a generic "related, N steps".
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from kintree.domain.graph import check_person
from kintree.domain.model import EdgeKind, ParentChildType

from .labels import (
    KinshipLabel,
    RelationKind,
    cousin_label,
    make_label,
    related_by_marriage_label,
    related_label,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence
    from uuid import UUID

    from kintree.domain.graph import ActiveGraphView
    from kintree.domain.model import Person, Sex

log = logging.getLogger(__name__)


class KinshipStatus(StrEnum):
    RELATED = "related"
    UNRELATED = "unrelated"
    SEARCH_DEPTH_EXCEEDED = "search_depth_exceeded"


@dataclass(frozen=True, slots=True)
class PathStep:
    person_id: UUID
    # How this person relates to the previous one; None for the starting person.
    edge: EdgeKind | None = None


@dataclass(frozen=True, slots=True)
class KinshipPath:
    steps: tuple[PathStep, ...]
    common_ancestor_id: UUID | None = None

    @property
    def length(self) -> int:
        return len(self.steps) - 1

    @property
    def person_ids(self) -> tuple[UUID, ...]:
        return tuple(step.person_id for step in self.steps)

    @property
    def edge_kinds(self) -> tuple[EdgeKind, ...]:
        return tuple(step.edge for step in self.steps[1:] if step.edge is not None)


@dataclass(frozen=True, slots=True)
class KinshipResult:
    person_a_id: UUID
    person_b_id: UUID
    status: KinshipStatus
    max_depth: int
    label: KinshipLabel | None = None
    path: KinshipPath | None = None

    @property
    def is_related(self) -> bool:
        return self.status is KinshipStatus.RELATED


def classify(
    view: ActiveGraphView,
    person_a: UUID,
    person_b: UUID,
    *,
    max_depth: int,
    lookup: Callable[[UUID], Person | None] | None = None,
) -> KinshipResult:
    """Describe person B relative to person A.

    Raises ``PersonNotFoundError`` or ``TenantMismatchError`` when either
    person is not active in the view's tree.
    """

    if max_depth < 1:
        raise ValueError("max_depth must be at least 1")
    for person_id in (person_a, person_b):
        error = check_person(view, person_id, lookup)
        if error is not None:
            raise error

    # Patterns and the search always run in one order of the pair, so that
    # classify(a, b) and classify(b, a) stay mirrors under pedigree collapse.
    forward = str(person_a) <= str(person_b)
    first, second = (person_a, person_b) if forward else (person_b, person_a)

    direct = _match_direct(view, first, second)
    if direct is not None and direct[1].length <= max_depth:
        kind, path, greats, is_half = direct
        if not forward:
            kind, path = kind.mirror, _reversed(path)
        if kind is RelationKind.COUSIN:
            label = cousin_label(1, 0)
        else:
            label = make_label(kind, _sex_of(view, person_b), greats=greats, is_half=is_half)
        return KinshipResult(
            person_a_id=person_a,
            person_b_id=person_b,
            status=KinshipStatus.RELATED,
            max_depth=max_depth,
            label=label,
            path=path,
        )

    path, exhausted = _shortest_path(view, first, second, max_depth=max_depth)
    if path is None:
        status = KinshipStatus.UNRELATED if exhausted else KinshipStatus.SEARCH_DEPTH_EXCEEDED
        log.debug("No path %s -> %s within %s steps: %s", person_a, person_b, max_depth, status)
        return KinshipResult(
            person_a_id=person_a,
            person_b_id=person_b,
            status=status,
            max_depth=max_depth,
        )
    named_path, label = _name_path(view, path if forward else _reversed_steps(path))
    return KinshipResult(
        person_a_id=person_a,
        person_b_id=person_b,
        status=KinshipStatus.RELATED,
        max_depth=max_depth,
        label=label,
        path=named_path,
    )


# Direct patterns -------------------------------------------------------------

type _Match = tuple[RelationKind, KinshipPath, int, bool]


def _path(start: UUID, *hops: tuple[UUID, EdgeKind], ancestor: UUID | None = None) -> KinshipPath:
    steps = (PathStep(start), *(PathStep(person_id, edge) for person_id, edge in hops))
    return KinshipPath(steps=steps, common_ancestor_id=ancestor)


def _inverse(edge: EdgeKind | None) -> EdgeKind | None:
    if edge is EdgeKind.PARENT:
        return EdgeKind.CHILD
    if edge is EdgeKind.CHILD:
        return EdgeKind.PARENT
    return edge


def _reversed_steps(steps: Sequence[PathStep]) -> list[PathStep]:
    """The same path walked from its last person back to its first."""

    reversed_steps = [PathStep(steps[-1].person_id)]
    for index in range(len(steps) - 1, 0, -1):
        reversed_steps.append(PathStep(steps[index - 1].person_id, _inverse(steps[index].edge)))
    return reversed_steps


def _reversed(path: KinshipPath) -> KinshipPath:
    return KinshipPath(
        steps=tuple(_reversed_steps(path.steps)),
        common_ancestor_id=path.common_ancestor_id,
    )


def _sorted(ids: frozenset[UUID]) -> list[UUID]:
    return sorted(ids, key=str)


def _is_step_edge(view: ActiveGraphView, parent_id: UUID, child_id: UUID) -> bool:
    types = {
        edge.relationship_type
        for edge in view.parent_edges_of(child_id)
        if edge.parent_id == parent_id
    }
    return types == {ParentChildType.STEP}


def _match_direct(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    for pattern in _PATTERNS:
        match = pattern(view, a, b)
        if match is not None:
            return match
    return None


def _self(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    _ = view
    if a == b:
        return RelationKind.SELF, _path(a), 0, False
    return None


def _parent(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    if b not in view.parent_ids(a):
        return None
    kind = RelationKind.STEP_PARENT if _is_step_edge(view, b, a) else RelationKind.PARENT
    return kind, _path(a, (b, EdgeKind.PARENT)), 0, False


def _child(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    if b not in view.child_ids(a):
        return None
    kind = RelationKind.STEP_CHILD if _is_step_edge(view, a, b) else RelationKind.CHILD
    return kind, _path(a, (b, EdgeKind.CHILD)), 0, False


def _spouse(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    if b in view.spouse_ids(a):
        return RelationKind.SPOUSE, _path(a, (b, EdgeKind.SPOUSE)), 0, False
    return None


def _sibling(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    parents_a = view.parent_ids(a)
    parents_b = view.parent_ids(b)
    shared = parents_a & parents_b
    if not shared:
        return None
    # Full siblings need identical parent sets; a subset (one missing parent
    # record) or a partial overlap is a half-sibling.
    is_half = parents_a != parents_b
    via = _sorted(shared)[0]
    path = _path(a, (via, EdgeKind.PARENT), (b, EdgeKind.CHILD), ancestor=via)
    return RelationKind.SIBLING, path, 0, is_half


def _step_parent(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    if b in view.parent_ids(a):
        return None
    for parent_id in _sorted(view.biological_parent_ids(a)):
        if b in view.spouse_ids(parent_id):
            path = _path(a, (parent_id, EdgeKind.PARENT), (b, EdgeKind.SPOUSE))
            return RelationKind.STEP_PARENT, path, 0, False
    return None


def _step_child(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    match = _step_parent(view, b, a)
    if match is None:
        return None
    parent_id = match[1].steps[1].person_id
    path = _path(a, (parent_id, EdgeKind.SPOUSE), (b, EdgeKind.CHILD))
    return RelationKind.STEP_CHILD, path, 0, False


def _step_sibling(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    parents_a = view.parent_ids(a)
    parents_b = view.parent_ids(b)
    if parents_a & parents_b:
        return None
    for parent_id in _sorted(view.biological_parent_ids(a)):
        for partner_id in _sorted(view.spouse_ids(parent_id)):
            if partner_id in parents_a or partner_id not in view.biological_parent_ids(b):
                continue
            path = _path(
                a,
                (parent_id, EdgeKind.PARENT),
                (partner_id, EdgeKind.SPOUSE),
                (b, EdgeKind.CHILD),
            )
            return RelationKind.STEP_SIBLING, path, 0, False
    return None


def _grandparent(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    for parent_id in _sorted(view.parent_ids(a)):
        if b in view.parent_ids(parent_id):
            path = _path(a, (parent_id, EdgeKind.PARENT), (b, EdgeKind.PARENT))
            return RelationKind.GRANDPARENT, path, 0, False
    return None


def _grandchild(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    for child_id in _sorted(view.child_ids(a)):
        if b in view.child_ids(child_id):
            path = _path(a, (child_id, EdgeKind.CHILD), (b, EdgeKind.CHILD))
            return RelationKind.GRANDCHILD, path, 0, False
    return None


def _aunt_uncle(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    parents_a = view.parent_ids(a)
    if b in parents_a:
        return None
    for parent_id in _sorted(parents_a):
        for grandparent_id in _sorted(view.parent_ids(parent_id) & view.parent_ids(b)):
            path = _path(
                a,
                (parent_id, EdgeKind.PARENT),
                (grandparent_id, EdgeKind.PARENT),
                (b, EdgeKind.CHILD),
                ancestor=grandparent_id,
            )
            return RelationKind.AUNT_UNCLE, path, 0, False
    return None


def _niece_nephew(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    match = _aunt_uncle(view, b, a)
    if match is None:
        return None
    reverse = match[1].person_ids
    path = _path(
        a,
        (reverse[2], EdgeKind.PARENT),
        (reverse[1], EdgeKind.CHILD),
        (b, EdgeKind.CHILD),
        ancestor=reverse[2],
    )
    return RelationKind.NIECE_NEPHEW, path, 0, False


def _first_cousin(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    parents_a = view.parent_ids(a)
    parents_b = view.parent_ids(b)
    if parents_a & parents_b:
        return None
    for parent_a in _sorted(parents_a):
        for parent_b in _sorted(parents_b):
            if parent_a == parent_b:
                continue
            shared = view.parent_ids(parent_a) & view.parent_ids(parent_b)
            if not shared:
                continue
            grandparent_id = _sorted(shared)[0]
            path = _path(
                a,
                (parent_a, EdgeKind.PARENT),
                (grandparent_id, EdgeKind.PARENT),
                (parent_b, EdgeKind.CHILD),
                (b, EdgeKind.CHILD),
                ancestor=grandparent_id,
            )
            return RelationKind.COUSIN, path, 0, False
    return None


def _parent_in_law(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    for spouse_id in _sorted(view.spouse_ids(a)):
        if b in view.parent_ids(spouse_id):
            path = _path(a, (spouse_id, EdgeKind.SPOUSE), (b, EdgeKind.PARENT))
            return RelationKind.PARENT_IN_LAW, path, 0, False
    return None


def _child_in_law(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    for child_id in _sorted(view.child_ids(a)):
        if b in view.spouse_ids(child_id):
            path = _path(a, (child_id, EdgeKind.CHILD), (b, EdgeKind.SPOUSE))
            return RelationKind.CHILD_IN_LAW, path, 0, False
    return None


def _sibling_in_law(view: ActiveGraphView, a: UUID, b: UUID) -> _Match | None:
    # Spouse's sibling.
    for spouse_id in _sorted(view.spouse_ids(a)):
        shared = view.parent_ids(spouse_id) & view.parent_ids(b)
        if shared and b != spouse_id:
            via = _sorted(shared)[0]
            path = _path(
                a,
                (spouse_id, EdgeKind.SPOUSE),
                (via, EdgeKind.PARENT),
                (b, EdgeKind.CHILD),
            )
            return RelationKind.SIBLING_IN_LAW, path, 0, False
    # Sibling's spouse.
    for spouse_id in _sorted(view.spouse_ids(b)):
        shared = view.parent_ids(spouse_id) & view.parent_ids(a)
        if shared and a != spouse_id:
            via = _sorted(shared)[0]
            path = _path(
                a,
                (via, EdgeKind.PARENT),
                (spouse_id, EdgeKind.CHILD),
                (b, EdgeKind.SPOUSE),
            )
            return RelationKind.SIBLING_IN_LAW, path, 0, False
    return None


_PATTERNS: tuple[Callable[[ActiveGraphView, UUID, UUID], _Match | None], ...] = (
    _self,
    _parent,
    _child,
    _spouse,
    _sibling,
    _step_parent,
    _step_child,
    _step_sibling,
    _grandparent,
    _grandchild,
    _aunt_uncle,
    _niece_nephew,
    _first_cousin,
    _parent_in_law,
    _child_in_law,
    _sibling_in_law,
)


# Breadth-first fallback ------------------------------------------------------


def _neighbours(view: ActiveGraphView, person_id: UUID) -> Iterator[tuple[UUID, EdgeKind]]:
    for parent_id in _sorted(view.parent_ids(person_id)):
        yield parent_id, EdgeKind.PARENT
    for child_id in _sorted(view.child_ids(person_id)):
        yield child_id, EdgeKind.CHILD
    for spouse_id in _sorted(view.spouse_ids(person_id)):
        yield spouse_id, EdgeKind.SPOUSE


def _shortest_path(
    view: ActiveGraphView,
    start: UUID,
    target: UUID,
    *,
    max_depth: int,
) -> tuple[list[PathStep] | None, bool]:
    """Return the path to ``target`` and whether the search space was exhausted.

    ``exhausted`` is False when people beyond ``max_depth`` were left
    unexplored, i.e. the target might still be reachable with a wider bound.
    """

    came_from: dict[UUID, tuple[UUID, EdgeKind]] = {}
    depth = {start: 0}
    queue = deque([start])
    exhausted = True
    while queue:
        current = queue.popleft()
        for neighbour, edge in _neighbours(view, current):
            if neighbour in depth:
                continue
            if depth[current] >= max_depth:
                exhausted = False
                break
            depth[neighbour] = depth[current] + 1
            came_from[neighbour] = (current, edge)
            if neighbour == target:
                return _reconstruct(came_from, start, target), True
            queue.append(neighbour)
    return None, exhausted


def _reconstruct(
    came_from: dict[UUID, tuple[UUID, EdgeKind]],
    start: UUID,
    target: UUID,
) -> list[PathStep]:
    steps: list[PathStep] = []
    current = target
    while current != start:
        previous, edge = came_from[current]
        steps.append(PathStep(current, edge))
        current = previous
    steps.append(PathStep(start))
    steps.reverse()
    return steps


def _name_path(view: ActiveGraphView, steps: list[PathStep]) -> tuple[KinshipPath, KinshipLabel]:
    kinds = [step.edge for step in steps[1:]]
    target_sex = _sex_of(view, steps[-1].person_id)
    length = len(kinds)
    if EdgeKind.SPOUSE in kinds:
        return KinshipPath(steps=tuple(steps)), related_by_marriage_label()

    up = 0
    while up < length and kinds[up] is EdgeKind.PARENT:
        up += 1
    down = length - up
    if any(kind is not EdgeKind.CHILD for kind in kinds[up:]):
        # Descends and climbs again (e.g. through a co-parent): no standard term.
        return KinshipPath(steps=tuple(steps)), related_label(length)

    ancestor = steps[up].person_id if up and down else None
    path = KinshipPath(steps=tuple(steps), common_ancestor_id=ancestor)
    if down == 0:
        return path, make_label(RelationKind.GRANDPARENT, target_sex, greats=max(up - 2, 0))
    if up == 0:
        return path, make_label(RelationKind.GRANDCHILD, target_sex, greats=max(down - 2, 0))
    if up == 1 and down == 1:
        is_half = view.parent_ids(steps[0].person_id) != view.parent_ids(steps[-1].person_id)
        return path, make_label(RelationKind.SIBLING, target_sex, is_half=is_half)
    if down == 1:
        return path, make_label(RelationKind.AUNT_UNCLE, target_sex, greats=up - 2)
    if up == 1:
        return path, make_label(RelationKind.NIECE_NEPHEW, target_sex, greats=down - 2)
    return path, cousin_label(min(up, down) - 1, abs(up - down))


def _sex_of(view: ActiveGraphView, person_id: UUID) -> Sex:
    person = view.person(person_id)
    if person is None:
        raise LookupError(person_id)
    return person.sex
