"""Reviewer decisions on duplicate candidates, stored as person links."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from kintree.domain.errors import PersonNotFoundError
from kintree.domain.model import PersonLink, PersonLinkStatus, PersonLinkType

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from kintree.domain.ports import GraphRepositories

log = logging.getLogger(__name__)


class DuplicateAction(StrEnum):
    APPROVE_LINK = "approve_link"
    REJECT = "reject"


_STATUS_BY_ACTION = {
    DuplicateAction.APPROVE_LINK: PersonLinkStatus.APPROVED,
    DuplicateAction.REJECT: PersonLinkStatus.REJECTED,
}


def resolved_pairs(links: Sequence[PersonLink]) -> set[frozenset[UUID]]:
    """Pairs a reviewer has already linked in any direction and status."""
    return {link.pair for link in links}


def record_decision(
    repositories: GraphRepositories,
    *,
    tree_id: UUID,
    person_a_id: UUID,
    person_b_id: UUID,
    action: DuplicateAction,
    reviewer: str,
) -> PersonLink:
    """Write (or update) the same-person link for the pair; the caller commits."""

    if person_a_id == person_b_id:
        raise ValueError("A duplicate decision needs two different people")
    tree_ids = {tree_id}
    for person_id in (person_a_id, person_b_id):
        person = repositories.people.get(person_id)
        if person is None or person.is_deleted:
            raise PersonNotFoundError(person_id=person_id, tree_id=tree_id)
        tree_ids.add(person.tree_id)

    status = _STATUS_BY_ACTION[action]
    pair = frozenset((person_a_id, person_b_id))
    for link in repositories.person_links.list_for_trees(tree_ids):
        if link.pair == pair and link.link_type is PersonLinkType.SAME_PERSON:
            link.status = status
            link.created_by = reviewer
            log.info("Updated person link %s to %s", link.id, status.value)
            return link

    link = PersonLink(
        tree_id=tree_id,
        person_a_id=person_a_id,
        person_b_id=person_b_id,
        link_type=PersonLinkType.SAME_PERSON,
        status=status,
        created_by=reviewer,
    )
    repositories.person_links.add(link)
    log.info(
        "Recorded %s person link %s for %s / %s", status.value, link.id, person_a_id, person_b_id
    )
    return link
