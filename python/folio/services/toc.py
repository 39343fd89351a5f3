"""TOC service layer.

Operations on a version's table of contents. Every operation follows the
same pipeline:

1. Permission gate (folio.auth.permissions)
2. Structural validation against a fresh read (toc_rules)
3. Writes through the tree repository, inside one transaction
4. Order maintenance (toc_ordering)

Routes call exactly one function from this module per request.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from folio.auth.permissions import Operation, require_node_access, require_version_access
from folio.config import get_settings
from folio.db.models import BookRole, TocKind, TocNode
from folio.db.session import transaction
from folio.errors import ApiErrorCode, CycleDetectedError, InvalidRequestError
from folio.logging import get_logger, toc_context
from folio.schemas.content import AssignmentOut, TocContentOut
from folio.schemas.toc import (
    MoveToSectionOut,
    ReorderTocOut,
    TocNodeDetailOut,
    TocNodeOut,
    TocSubtreeNodeOut,
    TocTreeOut,
)
from folio.services import toc_ordering, toc_rules
from folio.services import toc_repository as repo
from folio.services.slug import slugify

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 512


def _clean_title(title: str) -> str:
    title = title.strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_TITLE_INVALID, f"Title must be 1-{MAX_TITLE_LENGTH} characters"
        )
    return title


# =============================================================================
# Reads
# =============================================================================


def list_tree(db: Session, viewer_id: UUID | None, version_id: UUID) -> TocTreeOut:
    """List every node of a version as a flat, ordered list.

    Nodes are ordered by (order_index, created_at, id) across the whole
    version; clients group them by parent_id.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        version_id: The version to list.

    Returns:
        The version's nodes plus the viewer's role.

    Raises:
        NotFoundError: Version does not exist.
        ForbiddenError: Viewer has no role on the book.
    """
    access = require_version_access(db, viewer_id, version_id, Operation.view)
    nodes = repo.list_version_nodes(db, version_id)
    return TocTreeOut(
        version_id=version_id,
        book_id=access.book_id,
        role=access.role.value,
        nodes=[TocNodeOut.model_validate(node) for node in nodes],
    )


def get_node_detail(db: Session, viewer_id: UUID | None, node_id: UUID) -> TocNodeDetailOut:
    """Get a node with its content, assignments and the viewer's permissions.

    Assignments carry the assignee's email and display name; the owning
    version's template id is returned alongside.

    Raises:
        NotFoundError: Node does not exist.
        ForbiddenError: Viewer has no role on the book.
    """
    access = require_node_access(db, viewer_id, node_id, Operation.view)
    node = access.node
    content = repo.get_content(db, node.id)
    assignments = repo.list_assignments(db, node.id)

    can_edit_content = access.role == BookRole.editor or (
        access.role == BookRole.author
        and any(assignment.user_id == viewer_id for assignment in assignments)
    )

    return TocNodeDetailOut(
        node=TocNodeOut.model_validate(node),
        content=TocContentOut.model_validate(content) if content else None,
        assignments=[AssignmentOut.model_validate(a) for a in assignments],
        role=access.role.value,
        can_edit_content=can_edit_content,
        version_template_id=access.version.template_id,
    )


def get_subtree(db: Session, viewer_id: UUID | None, node_id: UUID) -> TocSubtreeNodeOut:
    """Get a node and all its descendants as a nested tree.

    Children are ordered by (order_index, created_at, id); depth is 0 at
    the requested node.

    Raises:
        NotFoundError: Node does not exist.
        ForbiddenError: Viewer has no role on the book.
        CycleDetectedError: Parent pointers below the node loop.
    """
    access = require_node_access(db, viewer_id, node_id, Operation.view)
    index = repo.build_children_index(repo.list_version_nodes(db, access.version.id))
    max_depth = get_settings().toc_max_depth
    visited: set[UUID] = set()

    def build(node: TocNode, depth: int) -> TocSubtreeNodeOut:
        if node.id in visited or depth > max_depth:
            raise CycleDetectedError("Parent pointers form a cycle", [node.id])
        visited.add(node.id)
        return TocSubtreeNodeOut(
            id=node.id,
            parent_id=node.parent_id,
            title=node.title,
            slug=node.slug,
            kind=node.kind,
            order_index=node.order_index,
            depth=depth,
            children=[build(child, depth + 1) for child in index.get(node.id, [])],
        )

    return build(access.node, 0)


# =============================================================================
# Structural mutations (editor only)
# =============================================================================


def create_node(
    db: Session,
    viewer_id: UUID | None,
    version_id: UUID,
    title: str,
    kind: TocKind | str = TocKind.chapter,
    parent_id: UUID | None = None,
) -> TocNodeOut:
    """Create a node at the end of its container.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        version_id: Version receiving the node.
        title: Node title (trimmed, 1-512 chars).
        kind: section, chapter or heading.
        parent_id: Parent node (None for root).

    Returns:
        The created node.

    Raises:
        NotFoundError: Version does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError(E_VERSION_LOCKED): Version is published.
        InvalidRequestError(E_TITLE_INVALID): Title is blank or too long.
        InvalidStructureError: The kind cannot live under that parent.
    """
    title = _clean_title(title)
    kind = TocKind(kind)

    with transaction(db), toc_context(version_id=version_id):
        require_version_access(db, viewer_id, version_id, Operation.edit_structure)
        toc_rules.validate_create(db, version_id, parent_id, kind)

        repo.lock_container(db, version_id, parent_id)
        node = repo.insert_node(
            db,
            version_id=version_id,
            parent_id=parent_id,
            title=title,
            slug=slugify(title),
            kind=kind.value,
            order_index=repo.max_order_index(db, version_id, parent_id) + 1,
        )
        result = TocNodeOut.model_validate(node)
        logger.info(
            "toc_node_created", node_id=result.id, kind=kind.value, order_index=result.order_index
        )
    return result


def patch_node(
    db: Session,
    viewer_id: UUID | None,
    node_id: UUID,
    *,
    title: str | None = None,
    parent_id: UUID | None = None,
    update_parent: bool = False,
) -> TocNodeOut:
    """Rename and/or reparent a node.

    A new title re-derives the slug. A parent change appends the node to
    the destination container and renormalizes both containers.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        node_id: The node to patch.
        title: New title, if renaming.
        parent_id: New parent (None for root); only used with update_parent.
        update_parent: Whether the request carries a parent change.

    Returns:
        The updated node.

    Raises:
        NotFoundError: Node does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError(E_VERSION_LOCKED): Version is published.
        InvalidRequestError(E_TITLE_INVALID): Title is blank or too long.
        InvalidStructureError: Illegal destination, or a section reparent.
        UnsupportedOperationError: A heading reparent.
    """
    if title is not None:
        title = _clean_title(title)

    with transaction(db), toc_context(node_id=node_id):
        access = require_node_access(db, viewer_id, node_id, Operation.edit_structure)
        node = access.node

        if title is not None and title != node.title:
            repo.update_node(db, node.book_version_id, node.id, title=title, slug=slugify(title))

        if update_parent:
            node = toc_ordering.move_node(db, node, parent_id)

        node = repo.get_node(db, node_id)
        result = TocNodeOut.model_validate(node)
        logger.info("toc_node_patched", version_id=result.book_version_id, moved=update_parent)
    return result


def delete_node(db: Session, viewer_id: UUID | None, node_id: UUID) -> None:
    """Delete a node and its whole subtree, with content and assignments.

    The former container is renormalized afterwards.

    Raises:
        NotFoundError: Node does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError(E_VERSION_LOCKED): Version is published.
    """
    with transaction(db), toc_context(node_id=node_id):
        access = require_node_access(db, viewer_id, node_id, Operation.edit_structure)
        node = access.node
        version_id = node.book_version_id
        parent_id = node.parent_id

        repo.lock_container(db, version_id, parent_id)
        subtree_ids = repo.collect_subtree_ids(db, version_id, node.id)
        deleted = repo.delete_nodes(db, version_id, subtree_ids)
        repo.renormalize_container(db, version_id, parent_id)
        logger.info("toc_node_deleted", version_id=version_id, deleted=deleted)


def reorder_nodes(
    db: Session,
    viewer_id: UUID | None,
    version_id: UUID,
    parent_id: UUID | None,
    ordered_ids: Sequence[UUID],
) -> ReorderTocOut:
    """Reorder the children of one container.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        version_id: Version being reordered.
        parent_id: Container node (None for root).
        ordered_ids: Node ids in their new order.

    Returns:
        The container's nodes in their final order.

    Raises:
        NotFoundError: Version does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError(E_VERSION_LOCKED): Version is published.
        InvalidBatchError: The batch failed validation.
    """
    with transaction(db), toc_context(version_id=version_id):
        require_version_access(db, viewer_id, version_id, Operation.edit_structure)
        nodes = toc_ordering.reorder_container(db, version_id, parent_id, ordered_ids)
        result = ReorderTocOut(
            version_id=version_id,
            parent_id=parent_id,
            nodes=[TocNodeOut.model_validate(node) for node in nodes],
        )
    return result


def move_chapters_to_section(
    db: Session,
    viewer_id: UUID | None,
    version_id: UUID,
    section_id: UUID,
    chapter_ids: Sequence[UUID],
    caller_order: Sequence[UUID] | None = None,
) -> MoveToSectionOut:
    """Move root-level chapters into a root section.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        version_id: Version containing the nodes.
        section_id: Destination section.
        chapter_ids: Candidate chapters.
        caller_order: Optional explicit order for the moved chapters.

    Returns:
        Moved count and ids, plus the ids that were missing or skipped.

    Raises:
        NotFoundError: Version or section does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError(E_VERSION_LOCKED): Version is published.
        InvalidStructureError: Target is not a root section.
        NoEligibleNodesError: No candidate is a root chapter of the version.
    """
    with transaction(db), toc_context(version_id=version_id, section_id=section_id):
        require_version_access(db, viewer_id, version_id, Operation.edit_structure)
        moved = toc_ordering.move_chapters_into_section(
            db, version_id, section_id, chapter_ids, caller_order
        )

    return MoveToSectionOut(
        version_id=version_id,
        section_id=section_id,
        moved_count=len(moved.moved),
        moved_ids=[node.id for node in moved.moved],
        missing_ids=moved.missing_ids,
        skipped_ids=moved.skipped_ids,
    )
