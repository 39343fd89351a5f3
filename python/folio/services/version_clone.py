"""Version clone engine.

Copies a published version's whole TOC into a brand-new draft version of
the same book:

1. Resolve the source: an explicit version id, or the highest-numbered
   published version of a book.
2. Authorize: book editor or system admin.
3. Lock the book row, refuse when the book already has a draft version,
   and allocate version_no = max(version_no) + 1.
4. Insert the draft version, inheriting template_id.
5. Read every source node, content row and assignment row through the tree
   repository (paged and chunked).
6. Index children by parent id from the flat read, then clone depth-first
   from the roots in stable order. Each clone copies title, slug, kind and
   order_index, then the node's content (content_json only, status reset to
   draft) and its assignments, then recurses with the new node id as parent.

The whole clone runs in one transaction. A failing insert aborts it with a
CloneError naming the step and source row; nothing is committed. A visited
set, a reachability check and a depth limit turn parent-pointer cycles into
CycleDetectedError instead of unbounded recursion.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from folio.auth.permissions import Operation, require_book_access
from folio.config import get_settings
from folio.db.models import (
    BookVersion,
    ContentStatus,
    TocAssignment,
    TocContent,
    TocNode,
    VersionStatus,
)
from folio.db.session import transaction
from folio.errors import (
    ApiError,
    ApiErrorCode,
    CloneError,
    ConflictError,
    CycleDetectedError,
    InvalidRequestError,
    NotFoundError,
)
from folio.logging import get_logger
from folio.schemas.version import BookVersionOut, CloneVersionOut
from folio.services import toc_repository as repo
from folio.services.versions import lock_book, next_version_no

logger = get_logger(__name__)


@dataclass
class CloneCounts:
    """Rows written by one clone."""

    nodes: int = 0
    contents: int = 0
    assignments: int = 0


class TreeCloner:
    """Depth-first copier of one version's tree into another version.

    Args:
        db: Database session (caller owns the transaction).
        target_version_id: The draft version receiving the copy.
        nodes: Every source node, in stable order.
        contents: Source content rows for those nodes.
        assignments: Source assignment rows for those nodes.
        max_depth: Deepest level allowed below a root (roots are depth 0).
    """

    def __init__(
        self,
        db: Session,
        target_version_id: UUID,
        nodes: list[TocNode],
        contents: list[TocContent],
        assignments: list[TocAssignment],
        max_depth: int,
    ):
        self.db = db
        self.target_version_id = target_version_id
        self.nodes = nodes
        self.children = repo.build_children_index(nodes)
        self.content_by_node = {content.toc_item_id: content for content in contents}
        self.assignments_by_node: dict[UUID, list[TocAssignment]] = {}
        for assignment in assignments:
            self.assignments_by_node.setdefault(assignment.toc_item_id, []).append(assignment)
        self.max_depth = max_depth
        self.visited: set[UUID] = set()
        self.id_map: dict[UUID, UUID] = {}
        self.counts = CloneCounts()

    def run(self) -> CloneCounts:
        """Clone every node reachable from the roots.

        Raises:
            CycleDetectedError: A node is revisited, nodes are unreachable
                from any root, or the depth limit is exceeded.
            CloneError: An insert failed.
        """
        for root in self.children.get(None, []):
            self._clone(root, None, depth=0)

        unreachable = [node.id for node in self.nodes if node.id not in self.visited]
        if unreachable:
            raise CycleDetectedError(
                "Some nodes are not reachable from a root; parent pointers form a cycle",
                unreachable,
            )
        return self.counts

    def _clone(self, node: TocNode, new_parent_id: UUID | None, depth: int) -> None:
        if node.id in self.visited:
            raise CycleDetectedError("Node visited twice while cloning", [node.id])
        if depth > self.max_depth:
            raise CycleDetectedError(
                f"Tree deeper than {self.max_depth} levels; parent pointers likely loop",
                [node.id],
            )
        self.visited.add(node.id)

        new_id = self._copy_node(node, new_parent_id)
        self._copy_content(node.id, new_id)
        self._copy_assignments(node.id, new_id)

        for child in self.children.get(node.id, []):
            self._clone(child, new_id, depth + 1)

    def _copy_node(self, node: TocNode, new_parent_id: UUID | None) -> UUID:
        try:
            clone = repo.insert_node(
                self.db,
                version_id=self.target_version_id,
                parent_id=new_parent_id,
                title=node.title,
                slug=node.slug,
                kind=node.kind,
                order_index=node.order_index,
            )
        except SQLAlchemyError as e:
            raise CloneError("node", f"Failed to clone node '{node.title}'", node.id) from e
        self.id_map[node.id] = clone.id
        self.counts.nodes += 1
        return clone.id

    def _copy_content(self, source_node_id: UUID, new_node_id: UUID) -> None:
        content = self.content_by_node.get(source_node_id)
        if content is None:
            return
        try:
            repo.insert_content(
                self.db,
                node_id=new_node_id,
                content_json=content.content_json,
                status=ContentStatus.draft.value,
                updated_by=content.updated_by,
            )
        except SQLAlchemyError as e:
            raise CloneError(
                "content", "Failed to clone content of node", source_node_id
            ) from e
        self.counts.contents += 1

    def _copy_assignments(self, source_node_id: UUID, new_node_id: UUID) -> None:
        for assignment in self.assignments_by_node.get(source_node_id, []):
            try:
                repo.insert_assignment(
                    self.db,
                    node_id=new_node_id,
                    user_id=assignment.user_id,
                    role_in_item=assignment.role_in_item,
                )
            except SQLAlchemyError as e:
                raise CloneError(
                    "assignment", "Failed to clone assignment of node", source_node_id
                ) from e
            self.counts.assignments += 1


def _latest_published_version(db: Session, book_id: UUID) -> BookVersion | None:
    return db.execute(
        select(BookVersion)
        .where(BookVersion.book_id == book_id, BookVersion.status == VersionStatus.published.value)
        .order_by(BookVersion.version_no.desc())
        .limit(1)
    ).scalar_one_or_none()


def _existing_draft(db: Session, book_id: UUID) -> BookVersion | None:
    return db.execute(
        select(BookVersion)
        .where(BookVersion.book_id == book_id, BookVersion.status == VersionStatus.draft.value)
        .order_by(BookVersion.version_no)
        .limit(1)
    ).scalar_one_or_none()


def resolve_clone_source(
    db: Session,
    viewer_id: UUID | None,
    source_version_id: UUID | None = None,
    book_id: UUID | None = None,
) -> BookVersion:
    """Find and authorize the version to clone.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        source_version_id: Explicit source version.
        book_id: Book whose latest published version is cloned when no
            explicit source is given.

    Returns:
        The source version.

    Raises:
        ApiError(E_UNAUTHENTICATED): No caller identity.
        InvalidRequestError: Neither id given, or the version is not in the book.
        NotFoundError: Book/version absent, or the book has no published version.
        ForbiddenError: Caller is neither book editor nor system admin.
        ConflictError(E_VERSION_NOT_PUBLISHED): Explicit source is a draft.
    """
    if viewer_id is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")

    if source_version_id is not None:
        source = repo.get_version(db, source_version_id)
        if source is None:
            raise NotFoundError(ApiErrorCode.E_VERSION_NOT_FOUND, "Version not found")
        if book_id is not None and source.book_id != book_id:
            raise InvalidRequestError(
                ApiErrorCode.E_INVALID_REQUEST, "Version does not belong to the given book"
            )
        require_book_access(db, viewer_id, source.book_id, Operation.edit_structure)
        if source.status != VersionStatus.published.value:
            raise ConflictError(
                ApiErrorCode.E_VERSION_NOT_PUBLISHED,
                "Only published versions can be cloned",
                {"version_id": str(source.id)},
            )
        return source

    if book_id is None:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "source_version_id or book_id is required"
        )

    require_book_access(db, viewer_id, book_id, Operation.edit_structure)
    source = _latest_published_version(db, book_id)
    if source is None:
        raise NotFoundError(
            ApiErrorCode.E_VERSION_NOT_FOUND, "Book has no published version to clone"
        )
    return source


def clone_version(
    db: Session,
    viewer_id: UUID | None,
    source_version_id: UUID | None = None,
    book_id: UUID | None = None,
) -> CloneVersionOut:
    """Clone a published version into a new draft version.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        source_version_id: Explicit source version.
        book_id: Book whose latest published version is cloned.

    Returns:
        The new draft version with the number of cloned rows.

    Raises:
        See resolve_clone_source, plus:
        ConflictError(E_DRAFT_EXISTS): The book already has a draft version.
        CycleDetectedError: The source tree's parent pointers loop.
        CloneError: An insert failed; the whole clone is rolled back.
    """
    settings = get_settings()

    with transaction(db):
        source = resolve_clone_source(db, viewer_id, source_version_id, book_id)

        lock_book(db, source.book_id)
        draft = _existing_draft(db, source.book_id)
        if draft is not None:
            raise ConflictError(
                ApiErrorCode.E_DRAFT_EXISTS,
                "Book already has a draft version; continue editing it",
                {"version_id": str(draft.id), "version_no": draft.version_no},
            )
        version_no = next_version_no(db, source.book_id)

        try:
            target = BookVersion(
                book_id=source.book_id,
                version_no=version_no,
                status=VersionStatus.draft.value,
                template_id=source.template_id,
                created_by=viewer_id,
            )
            db.add(target)
            db.flush()
        except SQLAlchemyError as e:
            raise CloneError("version", "Failed to create draft version", source.id) from e

        nodes = repo.list_version_nodes(db, source.id)
        node_ids = [node.id for node in nodes]
        contents = repo.list_contents_for_nodes(db, node_ids)
        assignments = repo.list_assignments_for_nodes(db, node_ids)

        counts = TreeCloner(
            db, target.id, nodes, contents, assignments, settings.toc_max_depth
        ).run()

    logger.info(
        "version_cloned",
        book_id=source.book_id,
        source_version_id=source.id,
        new_version_id=target.id,
        version_no=target.version_no,
        nodes=counts.nodes,
        contents=counts.contents,
        assignments=counts.assignments,
    )

    return CloneVersionOut(
        version=BookVersionOut.model_validate(target),
        source_version_id=source.id,
        node_count=counts.nodes,
        content_count=counts.contents,
        assignment_count=counts.assignments,
    )
