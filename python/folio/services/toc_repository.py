"""Tree repository: row access for TOC nodes, content and assignments.

This module is the only code that writes toc_nodes, toc_contents and
toc_assignments. Callers own the transaction (see ``transaction(db)``);
repository functions flush but never commit.

Read guarantees:
- Every node list is ordered by (order_index, created_at, id), so re-reads
  are deterministic even while order_index values collide transiently.
- Version-wide reads page with LIMIT/OFFSET (``TOC_PAGE_SIZE``) until a short
  page is returned, so callers never observe a truncated tree.
- Reads by id batch split the ids into IN-lists of ``TOC_ID_CHUNK_SIZE`` and
  page within each chunk.
- Reads refresh rows already present in the session (populate_existing), so
  validation always sees the current store state.

Write guarantees:
- Node updates and deletes are filtered by book_version_id (and parent_id
  where a container is addressed), so a stray id can never touch another
  version's tree.
- Node deletion is an explicit cascade: assignments, then content, then the
  nodes themselves, deepest first.
"""

from collections import defaultdict
from collections.abc import Iterator, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.orm import Session

from folio.config import get_settings
from folio.db.models import BookVersion, TocAssignment, TocContent, TocNode
from folio.logging import get_logger

logger = get_logger(__name__)

STABLE_NODE_ORDER = (TocNode.order_index, TocNode.created_at, TocNode.id)


# =============================================================================
# Paging helpers
# =============================================================================


def _resolve_page_size(page_size: int | None) -> int:
    return page_size or get_settings().toc_page_size


def _resolve_chunk_size(chunk_size: int | None) -> int:
    return chunk_size or get_settings().toc_id_chunk_size


def iter_chunks(ids: Sequence[UUID], size: int) -> Iterator[list[UUID]]:
    """Yield consecutive slices of ``ids`` with at most ``size`` items."""
    for start in range(0, len(ids), size):
        yield list(ids[start : start + size])


def fetch_all_pages(db: Session, stmt: Select, page_size: int) -> list[Any]:
    """Run an ordered select page by page until a short page is returned.

    Args:
        db: Database session.
        stmt: A select with a total ORDER BY (required for stable offsets).
        page_size: Rows per page.

    Returns:
        All rows (scalars) across every page.
    """
    rows: list[Any] = []
    offset = 0
    while True:
        page = (
            db.execute(
                stmt.limit(page_size)
                .offset(offset)
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        )
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += page_size


def container_clause(version_id: UUID, parent_id: UUID | None) -> list[Any]:
    """WHERE clauses addressing one (version, parent) container."""
    parent_clause = TocNode.parent_id.is_(None) if parent_id is None else TocNode.parent_id == parent_id
    return [TocNode.book_version_id == version_id, parent_clause]


# =============================================================================
# Nodes
# =============================================================================


def get_node(db: Session, node_id: UUID) -> TocNode | None:
    """Fetch a node by id (fresh read)."""
    return db.execute(
        select(TocNode)
        .where(TocNode.id == node_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def get_version(db: Session, version_id: UUID) -> BookVersion | None:
    """Fetch a version by id (fresh read)."""
    return db.execute(
        select(BookVersion)
        .where(BookVersion.id == version_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def list_version_nodes(
    db: Session, version_id: UUID, page_size: int | None = None
) -> list[TocNode]:
    """Fetch every node of a version in stable order, paging internally."""
    stmt = (
        select(TocNode)
        .where(TocNode.book_version_id == version_id)
        .order_by(*STABLE_NODE_ORDER)
    )
    return fetch_all_pages(db, stmt, _resolve_page_size(page_size))


def list_children(
    db: Session,
    version_id: UUID,
    parent_id: UUID | None,
    page_size: int | None = None,
) -> list[TocNode]:
    """Fetch the children of one container in stable order."""
    stmt = (
        select(TocNode)
        .where(*container_clause(version_id, parent_id))
        .order_by(*STABLE_NODE_ORDER)
    )
    return fetch_all_pages(db, stmt, _resolve_page_size(page_size))


def get_nodes_by_ids(
    db: Session,
    node_ids: Sequence[UUID],
    chunk_size: int | None = None,
    page_size: int | None = None,
) -> dict[UUID, TocNode]:
    """Fetch nodes by id across versions; absent ids are simply missing from the result."""
    found: dict[UUID, TocNode] = {}
    unique_ids = list(dict.fromkeys(node_ids))
    for chunk in iter_chunks(unique_ids, _resolve_chunk_size(chunk_size)):
        stmt = select(TocNode).where(TocNode.id.in_(chunk)).order_by(*STABLE_NODE_ORDER)
        for node in fetch_all_pages(db, stmt, _resolve_page_size(page_size)):
            found[node.id] = node
    return found


def max_order_index(db: Session, version_id: UUID, parent_id: UUID | None) -> int:
    """Return the highest order_index in a container (0 when empty)."""
    value = db.execute(
        select(func.max(TocNode.order_index)).where(*container_clause(version_id, parent_id))
    ).scalar()
    return int(value or 0)


def lock_container(db: Session, version_id: UUID, parent_id: UUID | None) -> None:
    """Serialize writers of one container for the rest of the transaction.

    Locks the parent node row, or the version row for the root container,
    with SELECT ... FOR UPDATE. Backends without row locks (SQLite) ignore
    the clause; see toc_ordering for the resulting race window.
    """
    if parent_id is None:
        stmt = select(BookVersion.id).where(BookVersion.id == version_id)
    else:
        stmt = select(TocNode.id).where(
            TocNode.id == parent_id, TocNode.book_version_id == version_id
        )
    db.execute(stmt.with_for_update()).first()


def insert_node(
    db: Session,
    *,
    version_id: UUID,
    parent_id: UUID | None,
    title: str,
    slug: str,
    kind: str,
    order_index: int,
) -> TocNode:
    """Insert a node and flush so database errors surface immediately."""
    node = TocNode(
        book_version_id=version_id,
        parent_id=parent_id,
        title=title,
        slug=slug,
        kind=kind,
        order_index=order_index,
    )
    db.add(node)
    db.flush()
    return node


def update_node(db: Session, version_id: UUID, node_id: UUID, **values: Any) -> int:
    """Update node columns, scoped to the node's version.

    Returns:
        Number of rows updated (0 when the node is not in that version).
    """
    result = db.execute(
        update(TocNode)
        .where(TocNode.id == node_id, TocNode.book_version_id == version_id)
        .values(**values)
    )
    return result.rowcount


def apply_positions(
    db: Session,
    version_id: UUID,
    parent_id: UUID | None,
    ordered: Sequence[TocNode],
) -> int:
    """Write order_index = 1..N following ``ordered``, skipping unchanged rows.

    Every update is scoped to the container, so a node that was moved out
    concurrently is left untouched.

    Returns:
        Number of rows whose order_index changed.
    """
    changed = 0
    for position, node in enumerate(ordered, start=1):
        if node.order_index == position:
            continue
        db.execute(
            update(TocNode)
            .where(TocNode.id == node.id, *container_clause(version_id, parent_id))
            .values(order_index=position)
        )
        changed += 1
    return changed


def renormalize_container(
    db: Session, version_id: UUID, parent_id: UUID | None
) -> list[TocNode]:
    """Rewrite a container's order_index values to a gap-free 1..N sequence.

    The current stable order is kept; duplicates are resolved by the
    (created_at, id) tie-break.

    Returns:
        The container's nodes in their final order.
    """
    children = list_children(db, version_id, parent_id)
    changed = apply_positions(db, version_id, parent_id, children)
    if changed:
        logger.debug(
            "toc_container_renormalized",
            version_id=version_id,
            parent_id=parent_id,
            changed=changed,
        )
    return children


def build_children_index(nodes: Sequence[TocNode]) -> dict[UUID | None, list[TocNode]]:
    """Group a flat node list by parent id, preserving the input order."""
    index: dict[UUID | None, list[TocNode]] = defaultdict(list)
    for node in nodes:
        index[node.parent_id].append(node)
    return index


def collect_subtree_ids(db: Session, version_id: UUID, root_id: UUID) -> list[UUID]:
    """Return ``root_id`` and all its descendants, parents before children.

    Built from a fresh flat read of the version; a visited set stops the
    walk if parent pointers loop.
    """
    index = build_children_index(list_version_nodes(db, version_id))
    ordered: list[UUID] = []
    visited: set[UUID] = set()
    queue = [root_id]
    while queue:
        node_id = queue.pop(0)
        if node_id in visited:
            continue
        visited.add(node_id)
        ordered.append(node_id)
        queue.extend(child.id for child in index.get(node_id, []))
    return ordered


def delete_nodes(
    db: Session,
    version_id: UUID,
    node_ids: Sequence[UUID],
    chunk_size: int | None = None,
) -> int:
    """Delete nodes with their assignments and content.

    Args:
        db: Database session.
        version_id: Version owning every node.
        node_ids: Ids ordered parents before children (see collect_subtree_ids).
        chunk_size: IN-list size override.

    Returns:
        Number of node rows deleted.
    """
    size = _resolve_chunk_size(chunk_size)
    ids = list(node_ids)

    for chunk in iter_chunks(ids, size):
        db.execute(delete(TocAssignment).where(TocAssignment.toc_item_id.in_(chunk)))
        db.execute(delete(TocContent).where(TocContent.toc_item_id.in_(chunk)))

    deleted = 0
    # Deepest first so no statement removes a parent while children still reference it
    for chunk in iter_chunks(ids[::-1], size):
        result = db.execute(
            delete(TocNode).where(TocNode.id.in_(chunk), TocNode.book_version_id == version_id)
        )
        deleted += result.rowcount
    return deleted


# =============================================================================
# Content
# =============================================================================


def get_content(db: Session, node_id: UUID) -> TocContent | None:
    """Fetch the content row of a node (fresh read)."""
    return db.execute(
        select(TocContent)
        .where(TocContent.toc_item_id == node_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def list_contents_for_nodes(
    db: Session,
    node_ids: Sequence[UUID],
    chunk_size: int | None = None,
    page_size: int | None = None,
) -> list[TocContent]:
    """Fetch content rows for a batch of nodes, chunked and paged."""
    rows: list[TocContent] = []
    for chunk in iter_chunks(list(node_ids), _resolve_chunk_size(chunk_size)):
        stmt = (
            select(TocContent)
            .where(TocContent.toc_item_id.in_(chunk))
            .order_by(TocContent.toc_item_id, TocContent.id)
        )
        rows.extend(fetch_all_pages(db, stmt, _resolve_page_size(page_size)))
    return rows


def insert_content(
    db: Session,
    *,
    node_id: UUID,
    content_json: Any,
    status: str,
    updated_by: UUID | None,
    editor_note: str | None = None,
    author_resolved: bool = False,
) -> TocContent:
    """Insert a content row and flush."""
    content = TocContent(
        toc_item_id=node_id,
        content_json=content_json,
        status=status,
        editor_note=editor_note,
        author_resolved=author_resolved,
        updated_by=updated_by,
    )
    db.add(content)
    db.flush()
    return content


def update_content(db: Session, node_id: UUID, **values: Any) -> int:
    """Update content columns of one node's row."""
    result = db.execute(
        update(TocContent).where(TocContent.toc_item_id == node_id).values(**values)
    )
    return result.rowcount


# =============================================================================
# Assignments
# =============================================================================


def list_assignments(db: Session, node_id: UUID) -> list[TocAssignment]:
    """Fetch a node's assignments ordered by creation."""
    return list(
        db.execute(
            select(TocAssignment)
            .where(TocAssignment.toc_item_id == node_id)
            .order_by(TocAssignment.created_at, TocAssignment.user_id)
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )


def list_assignments_for_nodes(
    db: Session,
    node_ids: Sequence[UUID],
    chunk_size: int | None = None,
    page_size: int | None = None,
) -> list[TocAssignment]:
    """Fetch assignments for a batch of nodes, chunked and paged."""
    rows: list[TocAssignment] = []
    for chunk in iter_chunks(list(node_ids), _resolve_chunk_size(chunk_size)):
        stmt = (
            select(TocAssignment)
            .where(TocAssignment.toc_item_id.in_(chunk))
            .order_by(TocAssignment.toc_item_id, TocAssignment.created_at, TocAssignment.id)
        )
        rows.extend(fetch_all_pages(db, stmt, _resolve_page_size(page_size)))
    return rows


def get_assignment(db: Session, node_id: UUID, user_id: UUID) -> TocAssignment | None:
    """Fetch one assignment (fresh read)."""
    return db.execute(
        select(TocAssignment)
        .where(TocAssignment.toc_item_id == node_id, TocAssignment.user_id == user_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def insert_assignment(
    db: Session, *, node_id: UUID, user_id: UUID, role_in_item: str
) -> TocAssignment:
    """Insert an assignment and flush."""
    assignment = TocAssignment(toc_item_id=node_id, user_id=user_id, role_in_item=role_in_item)
    db.add(assignment)
    db.flush()
    return assignment


def update_assignment_role(db: Session, node_id: UUID, user_id: UUID, role_in_item: str) -> int:
    """Change the role of an existing assignment."""
    result = db.execute(
        update(TocAssignment)
        .where(TocAssignment.toc_item_id == node_id, TocAssignment.user_id == user_id)
        .values(role_in_item=role_in_item)
    )
    return result.rowcount


def delete_assignment(db: Session, node_id: UUID, user_id: UUID) -> bool:
    """Delete one assignment; returns whether a row was removed."""
    result = db.execute(
        delete(TocAssignment).where(
            TocAssignment.toc_item_id == node_id, TocAssignment.user_id == user_id
        )
    )
    return result.rowcount > 0
