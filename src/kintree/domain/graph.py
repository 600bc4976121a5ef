"""Active graph view: the only place soft-deleted rows are filtered out.

The guard, resolver, duplicate detector and prediction engine all read the
tree through an ``ActiveGraphView`` snapshot. A view is built once per
operation (or taken from ``SnapshotCache``) and then answers adjacency
questions from in-memory indexes instead of issuing per-ancestor queries.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kintree.domain.errors import GraphError, PersonNotFoundError, TenantMismatchError
from kintree.domain.model import ParentChildEdge, Person, Sex, Union

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from uuid import UUID

    from kintree.domain.model import ParentChildType
    from kintree.domain.ports import GraphRepositories

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ActiveGraphView:
    """Immutable snapshot of one tree's non-deleted people, edges and unions."""

    tree_id: UUID
    _people: dict[UUID, Person] = field(default_factory=dict["UUID", Person])
    _edges: tuple[ParentChildEdge, ...] = ()
    _unions: tuple[Union, ...] = ()
    _edges_by_child: dict[UUID, list[ParentChildEdge]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _edges_by_parent: dict[UUID, list[ParentChildEdge]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _unions_by_person: dict[UUID, list[Union]] = field(default_factory=lambda: defaultdict(list))

    @classmethod
    def build(
        cls,
        tree_id: UUID,
        *,
        people: Iterable[Person],
        edges: Iterable[ParentChildEdge] = (),
        unions: Iterable[Union] = (),
    ) -> ActiveGraphView:
        active_people = {
            person.id: person
            for person in people
            if person.tree_id == tree_id and not person.is_deleted
        }
        active_edges = tuple(
            edge
            for edge in edges
            if edge.tree_id == tree_id
            and not edge.is_deleted
            and edge.parent_id in active_people
            and edge.child_id in active_people
        )
        active_unions = tuple(
            union
            for union in unions
            if union.tree_id == tree_id
            and not union.is_deleted
            and sum(1 for member_id in union.member_ids if member_id in active_people) >= 2
        )
        view = cls(
            tree_id=tree_id,
            _people=active_people,
            _edges=active_edges,
            _unions=active_unions,
        )
        for edge in active_edges:
            view._edges_by_child[edge.child_id].append(edge)
            view._edges_by_parent[edge.parent_id].append(edge)
        for union in active_unions:
            for member_id in union.member_ids:
                if member_id in active_people:
                    view._unions_by_person[member_id].append(union)
        return view

    # People --------------------------------------------------------------

    @property
    def people(self) -> tuple[Person, ...]:
        return tuple(self._people.values())

    def person(self, person_id: UUID) -> Person | None:
        return self._people.get(person_id)

    def __contains__(self, person_id: object) -> bool:
        return person_id in self._people

    def __len__(self) -> int:
        return len(self._people)

    # Parent-child edges --------------------------------------------------

    @property
    def edges(self) -> tuple[ParentChildEdge, ...]:
        return self._edges

    def parent_edges_of(self, person_id: UUID) -> tuple[ParentChildEdge, ...]:
        return tuple(self._edges_by_child.get(person_id, ()))

    def parent_ids(self, person_id: UUID) -> frozenset[UUID]:
        return frozenset(edge.parent_id for edge in self._edges_by_child.get(person_id, ()))

    def biological_parent_ids(self, person_id: UUID) -> frozenset[UUID]:
        return frozenset(
            edge.parent_id
            for edge in self._edges_by_child.get(person_id, ())
            if edge.is_biological
        )

    def child_ids(self, person_id: UUID) -> frozenset[UUID]:
        return frozenset(edge.child_id for edge in self._edges_by_parent.get(person_id, ()))

    def find_edge(
        self, parent_id: UUID, child_id: UUID, edge_type: ParentChildType
    ) -> ParentChildEdge | None:
        for edge in self._edges_by_child.get(child_id, ()):
            if edge.parent_id == parent_id and edge.relationship_type is edge_type:
                return edge
        return None

    def is_linked(self, first_id: UUID, second_id: UUID) -> bool:
        """Whether either person is recorded as a parent of the other."""
        return second_id in self.parent_ids(first_id) or first_id in self.parent_ids(second_id)

    def father_of(self, person_id: UUID) -> Person | None:
        """Male parent, biological edges first, then by id for determinism."""
        edges = sorted(
            self._edges_by_child.get(person_id, ()),
            key=lambda edge: (not edge.is_biological, str(edge.parent_id)),
        )
        for edge in edges:
            parent = self._people[edge.parent_id]
            if parent.sex is Sex.MALE:
                return parent
        return None

    def ancestor_chain(self, start_id: UUID, target_id: UUID) -> tuple[UUID, ...] | None:
        """Breadth-first walk up from ``start_id``; chain to ``target_id`` if it is an ancestor.

        The returned chain starts at ``start_id`` and ends at ``target_id``.
        """
        if start_id == target_id:
            return (start_id,)
        came_from: dict[UUID, UUID] = {}
        visited = {start_id}
        queue = deque([start_id])
        while queue:
            current = queue.popleft()
            for parent_id in sorted(self.parent_ids(current), key=str):
                if parent_id in visited:
                    continue
                visited.add(parent_id)
                came_from[parent_id] = current
                if parent_id == target_id:
                    chain = [parent_id]
                    while chain[-1] != start_id:
                        chain.append(came_from[chain[-1]])
                    return tuple(reversed(chain))
                queue.append(parent_id)
        return None

    # Unions ----------------------------------------------------------------

    @property
    def unions(self) -> tuple[Union, ...]:
        return self._unions

    def unions_of(self, person_id: UUID) -> tuple[Union, ...]:
        return tuple(self._unions_by_person.get(person_id, ()))

    def spouse_ids(self, person_id: UUID) -> frozenset[UUID]:
        return frozenset(
            member_id
            for union in self._unions_by_person.get(person_id, ())
            for member_id in union.member_ids
            if member_id != person_id and member_id in self._people
        )

    def shared_union(self, first_id: UUID, second_id: UUID) -> Union | None:
        for union in self._unions_by_person.get(first_id, ()):
            if second_id in union.member_ids:
                return union
        return None


def check_person(
    view: ActiveGraphView,
    person_id: UUID,
    lookup: Callable[[UUID], Person | None] | None = None,
) -> GraphError | None:
    """Explain why ``person_id`` is not in the view: missing or deleted, or another tree."""

    if person_id in view:
        return None
    stored = lookup(person_id) if lookup is not None else None
    if stored is None or stored.is_deleted or stored.tree_id == view.tree_id:
        return PersonNotFoundError(person_id=person_id, tree_id=view.tree_id)
    return TenantMismatchError(
        person_id=person_id,
        expected_tree_id=view.tree_id,
        actual_tree_id=stored.tree_id,
    )


def is_stale(
    view: ActiveGraphView,
    person_ids: Iterable[UUID],
    lookup: Callable[[UUID], Person | None],
) -> bool:
    """Whether storage and ``view`` disagree on which of ``person_ids`` are active.

    Catches people added or soft-deleted behind the snapshot cache's back.
    """

    for person_id in person_ids:
        stored = lookup(person_id)
        active = stored is not None and not stored.is_deleted and stored.tree_id == view.tree_id
        if active != (person_id in view):
            return True
    return False


def load_active_view(repositories: GraphRepositories, tree_id: UUID) -> ActiveGraphView:
    """Read one tree through the repositories into an active view."""

    view = ActiveGraphView.build(
        tree_id,
        people=repositories.people.list_for_tree(tree_id),
        edges=repositories.edges.list_for_tree(tree_id),
        unions=repositories.unions.list_for_tree(tree_id),
    )
    log.debug(
        "Loaded active view for tree %s: people=%s, edges=%s, unions=%s",
        tree_id,
        len(view),
        len(view.edges),
        len(view.unions),
    )
    return view


class SnapshotCache:
    """Per-tree cache of active views, invalidated whenever a mutation commits.

    A generation counter per tree stops a view that was being built while a
    mutation committed from being stored after the invalidation.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._views: dict[UUID, ActiveGraphView] = {}
        self._generations: dict[UUID, int] = defaultdict(int)

    def get(self, tree_id: UUID, loader: Callable[[], ActiveGraphView]) -> ActiveGraphView:
        with self._lock:
            cached = self._views.get(tree_id)
            generation = self._generations[tree_id]
        if cached is not None:
            return cached
        view = loader()
        with self._lock:
            if self._generations[tree_id] == generation:
                self._views[tree_id] = view
        return view

    def invalidate(self, tree_id: UUID) -> None:
        with self._lock:
            self._views.pop(tree_id, None)
            self._generations[tree_id] += 1
        log.debug("Invalidated graph snapshot for tree %s", tree_id)

    def __contains__(self, tree_id: object) -> bool:
        with self._lock:
            return tree_id in self._views
