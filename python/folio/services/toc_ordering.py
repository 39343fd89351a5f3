"""Reorder/move engine and section mover for TOC containers.

A container is the ordered child list of one (version, parent) pair; the
root container has parent_id = NULL. Functions here run inside the
caller's transaction, after the permission gate, and validate through
toc_rules before writing.

Ordering policy:
- reorder_container writes 1..N for the container in one pass.
- move_node appends at max(order_index) + 1 in the destination, then
  renormalizes both the source and destination containers.
- move_chapters_into_section renormalizes the destination only; gaps left
  in the root container persist until the next reorder or renormalization.

Concurrency:
Each mutation first takes lock_container() on every container it touches
(SELECT ... FOR UPDATE on the parent row, or the version row for the root).
On PostgreSQL this serializes read-max-then-write sequences per container,
so concurrent moves cannot allocate the same order_index.

Known race window: on backends that ignore FOR UPDATE (SQLite), two
concurrent appends into one container can both read the same maximum and
write duplicate order_index values. Reads stay deterministic because the
repository breaks ties by (created_at, id), and the duplicates disappear on
the next reorder_container or renormalize_container call for that container.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from folio.db.models import TocKind, TocNode
from folio.errors import (
    ApiErrorCode,
    InvalidStructureError,
    NoEligibleNodesError,
    NotFoundError,
)
from folio.logging import get_logger
from folio.services import toc_repository as repo
from folio.services import toc_rules

logger = get_logger(__name__)


@dataclass
class SectionMoveResult:
    """Outcome of move_chapters_into_section.

    Attributes:
        moved: Chapters now inside the section, in their new order.
        missing_ids: Ids that do not exist in the version.
        skipped_ids: Ids that exist but are not root-level chapters.
    """

    moved: list[TocNode]
    missing_ids: list[UUID] = field(default_factory=list)
    skipped_ids: list[UUID] = field(default_factory=list)


def _lock_containers(db: Session, version_id: UUID, parent_ids: set[UUID | None]) -> None:
    # Fixed lock order (root first, then by id) so two movers cannot deadlock
    for parent_id in sorted(parent_ids, key=lambda p: (p is not None, str(p))):
        repo.lock_container(db, version_id, parent_id)


def reorder_container(
    db: Session,
    version_id: UUID,
    parent_id: UUID | None,
    ordered_ids: Sequence[UUID],
) -> list[TocNode]:
    """Apply a caller-specified order to one container.

    When ``ordered_ids`` covers the whole container, order_index becomes
    1..N in exactly that sequence. When it covers a subset (e.g. only the
    sections of a root that also holds chapters), the listed nodes are
    permuted among the positions they already occupy and the container is
    rewritten as 1..N. Applying the same list twice changes nothing.

    Args:
        db: Database session (caller owns the transaction).
        version_id: Version being reordered.
        parent_id: Container node (None for root).
        ordered_ids: Node ids in their new order.

    Returns:
        The container's nodes in their final order.

    Raises:
        InvalidBatchError: The batch failed validation.
    """
    _lock_containers(db, version_id, {parent_id})
    batch = toc_rules.validate_reorder_batch(db, version_id, parent_id, ordered_ids)

    siblings = repo.list_children(db, version_id, parent_id)
    batch_ids = {node.id for node in batch}
    slots = [i for i, sibling in enumerate(siblings) if sibling.id in batch_ids]

    sequence = list(siblings)
    for slot, node in zip(slots, batch, strict=True):
        sequence[slot] = node

    changed = repo.apply_positions(db, version_id, parent_id, sequence)
    logger.info(
        "toc_container_reordered",
        version_id=version_id,
        parent_id=parent_id,
        batch_size=len(batch),
        changed=changed,
    )
    return sequence


def move_node(db: Session, node: TocNode, new_parent_id: UUID | None) -> TocNode:
    """Reparent a node, appending it to the end of the destination container.

    Args:
        db: Database session (caller owns the transaction).
        node: The node to move.
        new_parent_id: Destination parent (None for root).

    Returns:
        The node with its new parent and order_index.

    Raises:
        InvalidStructureError: The destination is not a legal parent.
        UnsupportedOperationError: The node is a heading.
    """
    version_id = node.book_version_id
    source_parent_id = node.parent_id

    _lock_containers(db, version_id, {source_parent_id, new_parent_id})
    node = repo.get_node(db, node.id) or node
    source_parent_id = node.parent_id

    if not toc_rules.validate_move(db, node, new_parent_id):
        return node

    position = repo.max_order_index(db, version_id, new_parent_id) + 1
    repo.update_node(db, version_id, node.id, parent_id=new_parent_id, order_index=position)

    repo.renormalize_container(db, version_id, source_parent_id)
    repo.renormalize_container(db, version_id, new_parent_id)

    logger.info(
        "toc_node_moved",
        node_id=node.id,
        from_parent_id=source_parent_id,
        to_parent_id=new_parent_id,
    )
    return repo.get_node(db, node.id) or node


def move_chapters_into_section(
    db: Session,
    version_id: UUID,
    section_id: UUID,
    chapter_ids: Sequence[UUID],
    caller_order: Sequence[UUID] | None = None,
) -> SectionMoveResult:
    """Move root-level chapters into a root section.

    Ids that are not in the version are reported as missing; ids that are
    not root-level chapters (sections, headings, chapters already nested)
    are reported as skipped. Eligible chapters are appended after the
    section's current last child in ``caller_order`` (ids absent from
    ``caller_order`` keep their ``chapter_ids`` order, after the listed ones).

    Args:
        db: Database session (caller owns the transaction).
        version_id: Version containing the nodes.
        section_id: Destination section.
        chapter_ids: Candidate chapters.
        caller_order: Optional explicit order for the moved chapters.

    Returns:
        SectionMoveResult.

    Raises:
        NotFoundError(E_NODE_NOT_FOUND): The section is not in the version.
        InvalidStructureError: The target is not a root section.
        NoEligibleNodesError: No candidate passed the filter.
    """
    section = repo.get_node(db, section_id)
    if section is None or section.book_version_id != version_id:
        raise NotFoundError(ApiErrorCode.E_NODE_NOT_FOUND, "Section not found")
    if section.kind != TocKind.section.value or section.parent_id is not None:
        raise InvalidStructureError(
            "target_not_root_section", "Target must be a root-level section", node_id=section_id
        )

    _lock_containers(db, version_id, {None, section_id})

    candidate_ids = list(dict.fromkeys(chapter_ids))
    found = repo.get_nodes_by_ids(db, candidate_ids)

    missing_ids: list[UUID] = []
    skipped_ids: list[UUID] = []
    eligible: list[TocNode] = []
    for candidate_id in candidate_ids:
        node = found.get(candidate_id)
        if node is None or node.book_version_id != version_id:
            missing_ids.append(candidate_id)
        elif node.kind != TocKind.chapter.value or node.parent_id is not None:
            skipped_ids.append(candidate_id)
        else:
            eligible.append(node)

    if not eligible:
        raise NoEligibleNodesError(missing_ids=missing_ids, skipped_ids=skipped_ids)

    if caller_order:
        rank = {node_id: position for position, node_id in enumerate(caller_order)}
        eligible.sort(key=lambda n: rank.get(n.id, len(rank)))

    start = repo.max_order_index(db, version_id, section_id)
    for offset, chapter in enumerate(eligible, start=1):
        repo.update_node(
            db, version_id, chapter.id, parent_id=section_id, order_index=start + offset
        )

    children = repo.renormalize_container(db, version_id, section_id)
    moved_ids = {chapter.id for chapter in eligible}

    logger.info(
        "toc_chapters_moved_to_section",
        version_id=version_id,
        section_id=section_id,
        moved=len(eligible),
        missing=len(missing_ids),
        skipped=len(skipped_ids),
    )
    return SectionMoveResult(
        moved=[child for child in children if child.id in moved_ids],
        missing_ids=missing_ids,
        skipped_ids=skipped_ids,
    )
