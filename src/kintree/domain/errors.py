"""Error taxonomy for graph mutations and analyses.

Integrity rejections (cycle, duplicate edge, self-parentage, referential
errors) are business outcomes: the guard returns them inside an
``EdgeProposal`` instead of raising. They still subclass ``Exception`` so that
callers who prefer faults can use ``EdgeProposal.raise_for_status()``.

Every error exposes a stable ``code`` and a ``details`` mapping holding the
ids involved, so a UI can explain which invariant failed and for whom.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from kintree.domain.model import ParentChildType, PredictionStatus


class GraphError(Exception):
    """Base class for kinship graph errors."""

    code: ClassVar[str] = "graph_error"

    @property
    def details(self) -> dict[str, object]:
        return {}


class CycleDetectedError(GraphError):
    """Adding the edge would make a person their own ancestor."""

    code = "cycle_detected"

    def __init__(self, *, parent_id: UUID, child_id: UUID, chain: Sequence[UUID]) -> None:
        self.parent_id = parent_id
        self.child_id = child_id
        # Ancestry chain from the proposed parent up to the proposed child.
        self.chain = tuple(chain)
        super().__init__(
            f"Edge {parent_id} -> {child_id} would create a cycle: "
            f"{child_id} is already an ancestor of {parent_id} "
            f"({len(self.chain) - 1} generation(s) up)"
        )

    @property
    def details(self) -> dict[str, object]:
        return {
            "parent_id": str(self.parent_id),
            "child_id": str(self.child_id),
            "chain": [str(person_id) for person_id in self.chain],
        }


class DuplicateEdgeError(GraphError):
    """An identical active (parent, child, type) edge already exists."""

    code = "duplicate_edge"

    def __init__(
        self,
        *,
        parent_id: UUID,
        child_id: UUID,
        edge_type: ParentChildType,
        existing_edge_id: UUID,
    ) -> None:
        self.parent_id = parent_id
        self.child_id = child_id
        self.edge_type = edge_type
        self.existing_edge_id = existing_edge_id
        super().__init__(
            f"Edge {parent_id} -> {child_id} ({edge_type.value}) already exists "
            f"as {existing_edge_id}"
        )

    @property
    def details(self) -> dict[str, object]:
        return {
            "parent_id": str(self.parent_id),
            "child_id": str(self.child_id),
            "edge_type": self.edge_type.value,
            "existing_edge_id": str(self.existing_edge_id),
        }


class DuplicateUnionError(GraphError):
    """An active union already groups exactly the same people."""

    code = "duplicate_edge"

    def __init__(self, *, person_ids: Sequence[UUID], existing_union_id: UUID) -> None:
        self.person_ids = tuple(person_ids)
        self.existing_union_id = existing_union_id
        super().__init__(
            f"Union of {len(self.person_ids)} people already exists as {existing_union_id}"
        )

    @property
    def details(self) -> dict[str, object]:
        return {
            "person_ids": [str(person_id) for person_id in self.person_ids],
            "existing_union_id": str(self.existing_union_id),
        }


class SelfParentageError(GraphError):
    """A person cannot be their own parent."""

    code = "self_parentage"

    def __init__(self, *, person_id: UUID) -> None:
        self.person_id = person_id
        super().__init__(f"Person {person_id} cannot be their own parent")

    @property
    def details(self) -> dict[str, object]:
        return {"person_id": str(self.person_id)}


class PersonNotFoundError(GraphError, LookupError):
    """The person does not exist in the tree or was deleted."""

    code = "person_not_found"

    def __init__(self, *, person_id: UUID, tree_id: UUID) -> None:
        self.person_id = person_id
        self.tree_id = tree_id
        super().__init__(f"Person {person_id} not found in tree {tree_id}")

    @property
    def details(self) -> dict[str, object]:
        return {"person_id": str(self.person_id), "tree_id": str(self.tree_id)}


class TenantMismatchError(GraphError):
    """The person belongs to a different tree than the operation."""

    code = "tenant_mismatch"

    def __init__(self, *, person_id: UUID, expected_tree_id: UUID, actual_tree_id: UUID) -> None:
        self.person_id = person_id
        self.expected_tree_id = expected_tree_id
        self.actual_tree_id = actual_tree_id
        super().__init__(
            f"Person {person_id} belongs to tree {actual_tree_id}, not {expected_tree_id}"
        )

    @property
    def details(self) -> dict[str, object]:
        return {
            "person_id": str(self.person_id),
            "expected_tree_id": str(self.expected_tree_id),
            "actual_tree_id": str(self.actual_tree_id),
        }


class ConcurrentModificationError(GraphError):
    """The tree lock could not be acquired; safe to retry."""

    code = "concurrent_modification"

    def __init__(self, *, tree_id: UUID, attempts: int = 1) -> None:
        self.tree_id = tree_id
        self.attempts = attempts
        super().__init__(
            f"Tree {tree_id} is being modified concurrently (attempts={attempts})"
        )

    @property
    def details(self) -> dict[str, object]:
        return {"tree_id": str(self.tree_id), "attempts": self.attempts}


class PredictionNotFoundError(GraphError, LookupError):
    code = "prediction_not_found"

    def __init__(self, *, prediction_id: UUID) -> None:
        self.prediction_id = prediction_id
        super().__init__(f"Prediction {prediction_id} not found")

    @property
    def details(self) -> dict[str, object]:
        return {"prediction_id": str(self.prediction_id)}


class InvalidTransitionError(GraphError):
    """The review action is not allowed from the prediction's current status."""

    code = "invalid_transition"

    def __init__(self, *, prediction_id: UUID, status: PredictionStatus, action: str) -> None:
        self.prediction_id = prediction_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} prediction {prediction_id} in status {status.value}"
        )

    @property
    def details(self) -> dict[str, object]:
        return {
            "prediction_id": str(self.prediction_id),
            "status": self.status.value,
            "action": self.action,
        }


class ScanCancelledError(GraphError):
    """A long-running scan was cancelled or ran past its deadline."""

    code = "scan_cancelled"

    def __init__(self, *, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"Scan cancelled during {stage}: {reason}")

    @property
    def details(self) -> dict[str, object]:
        return {"stage": self.stage, "reason": self.reason}
