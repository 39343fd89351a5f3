"""Structural rule engine for TOC trees.

Nesting is defined by one compatibility table (parent kind -> allowed child
kinds, with ``None`` standing for the root container):

    root    -> section, chapter
    section -> chapter
    chapter -> heading
    heading -> (nothing)

Every validator reads current state through the tree repository and never
writes. Failures name the violated rule:

- validate_create: InvalidStructureError
- validate_move: InvalidStructureError, or UnsupportedOperationError for
  heading reparenting
- validate_reorder_batch: InvalidBatchError listing the offending ids
"""

from collections import Counter
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from folio.db.models import TocKind, TocNode
from folio.errors import InvalidBatchError, InvalidStructureError, UnsupportedOperationError
from folio.services import toc_repository as repo

ALLOWED_CHILD_KINDS: dict[TocKind | None, frozenset[TocKind]] = {
    None: frozenset({TocKind.section, TocKind.chapter}),
    TocKind.section: frozenset({TocKind.chapter}),
    TocKind.chapter: frozenset({TocKind.heading}),
    TocKind.heading: frozenset(),
}

# Rule violated when a node of this kind gets an incompatible parent
PARENT_RULES: dict[TocKind, tuple[str, str]] = {
    TocKind.section: ("section_root_only", "Sections can only live at the root"),
    TocKind.chapter: (
        "chapter_parent_must_be_section",
        "Chapters can only live at the root or inside a section",
    ),
    TocKind.heading: ("heading_parent_must_be_chapter", "Headings must live inside a chapter"),
}


def can_nest(child_kind: TocKind, parent_kind: TocKind | None) -> bool:
    """Check the compatibility table for a (parent kind, child kind) pair."""
    return child_kind in ALLOWED_CHILD_KINDS[parent_kind]


def _kind_of(node: TocNode | None) -> TocKind | None:
    return TocKind(node.kind) if node is not None else None


def _violation(kind: TocKind, node_id: UUID | None = None) -> InvalidStructureError:
    rule, message = PARENT_RULES[kind]
    return InvalidStructureError(rule, message, node_id=node_id)


def _load_parent(db: Session, version_id: UUID, parent_id: UUID) -> TocNode:
    parent = repo.get_node(db, parent_id)
    if parent is None:
        raise InvalidStructureError("parent_not_found", "Parent node not found", node_id=parent_id)
    if parent.book_version_id != version_id:
        raise InvalidStructureError(
            "cross_version_parent",
            "Parent node belongs to a different version",
            node_id=parent_id,
        )
    return parent


def validate_create(
    db: Session, version_id: UUID, parent_id: UUID | None, kind: TocKind | str
) -> TocNode | None:
    """Validate placing a new node of ``kind`` under ``parent_id``.

    Args:
        db: Database session.
        version_id: Version the node will belong to.
        parent_id: Intended parent (None for root).
        kind: Kind of the new node.

    Returns:
        The parent node, or None for a root node.

    Raises:
        InvalidStructureError: Parent missing, in another version, or of an
            incompatible kind.
    """
    kind = TocKind(kind)
    if kind == TocKind.section and parent_id is not None:
        raise _violation(kind, node_id=parent_id)

    parent = _load_parent(db, version_id, parent_id) if parent_id is not None else None
    if not can_nest(kind, _kind_of(parent)):
        raise _violation(kind, node_id=parent_id)
    return parent


def validate_move(db: Session, node: TocNode, new_parent_id: UUID | None) -> bool:
    """Validate reparenting ``node`` under ``new_parent_id``.

    Args:
        db: Database session.
        node: The node being moved (freshly read).
        new_parent_id: Destination parent (None for root).

    Returns:
        True when the parent changes; False when the move is a no-op.

    Raises:
        InvalidStructureError: Section reparenting, or an incompatible,
            missing, cross-version or self parent for a chapter.
        UnsupportedOperationError: Heading reparenting.
    """
    if new_parent_id == node.parent_id:
        return False

    kind = TocKind(node.kind)
    if kind == TocKind.section:
        raise _violation(kind, node_id=node.id)
    if kind == TocKind.heading:
        raise UnsupportedOperationError(
            "Headings cannot be moved to another parent; reorder them within their chapter",
            node_id=node.id,
        )

    if new_parent_id == node.id:
        raise InvalidStructureError("self_parent", "A node cannot be its own parent", node.id)

    parent = _load_parent(db, node.book_version_id, new_parent_id) if new_parent_id else None
    if not can_nest(kind, _kind_of(parent)):
        raise _violation(kind, node_id=new_parent_id)
    return True


def validate_reorder_batch(
    db: Session,
    version_id: UUID,
    parent_id: UUID | None,
    node_ids: Sequence[UUID],
) -> list[TocNode]:
    """Validate a reorder batch for one container.

    Checks, in order: non-empty, no duplicates, container exists in the
    version, every id (a) exists, (b) is in the version, (c) has the stated
    parent, and (d) all share one kind that the container accepts.

    Args:
        db: Database session.
        version_id: Version being reordered.
        parent_id: Container node (None for root).
        node_ids: Proposed order.

    Returns:
        The nodes in the supplied order.

    Raises:
        InvalidBatchError: With the rule name and offending ids.
    """
    if not node_ids:
        raise InvalidBatchError("empty_batch", "Reorder batch is empty")

    duplicates = [node_id for node_id, count in Counter(node_ids).items() if count > 1]
    if duplicates:
        raise InvalidBatchError("duplicate_ids", "Reorder batch repeats node ids", duplicates)

    container_kind: TocKind | None = None
    if parent_id is not None:
        container = repo.get_node(db, parent_id)
        if container is None or container.book_version_id != version_id:
            raise InvalidBatchError(
                "container_not_found", "Container node not found in this version", [parent_id]
            )
        container_kind = TocKind(container.kind)

    found = repo.get_nodes_by_ids(db, node_ids)

    missing = [i for i in node_ids if i not in found]
    if missing:
        raise InvalidBatchError("nodes_not_found", "Some nodes do not exist", missing)

    wrong_version = [i for i in node_ids if found[i].book_version_id != version_id]
    if wrong_version:
        raise InvalidBatchError(
            "version_mismatch", "Some nodes belong to a different version", wrong_version
        )

    wrong_parent = [i for i in node_ids if found[i].parent_id != parent_id]
    if wrong_parent:
        raise InvalidBatchError(
            "parent_mismatch", "Some nodes are not children of this container", wrong_parent
        )

    allowed = ALLOWED_CHILD_KINDS[container_kind]
    disallowed = [i for i in node_ids if TocKind(found[i].kind) not in allowed]
    if disallowed:
        raise InvalidBatchError(
            "kind_not_allowed_in_container",
            "Some nodes have a kind this container cannot hold",
            disallowed,
        )

    batch_kind = found[node_ids[0]].kind
    mixed = [i for i in node_ids if found[i].kind != batch_kind]
    if mixed:
        raise InvalidBatchError(
            "mixed_kinds", "A reorder batch must contain nodes of a single kind", mixed
        )

    return [found[i] for i in node_ids]
