"""Permission gate for book, version and TOC node access.

Predicates (``is_*``, ``get_*``, ``has_*``):
- Accept an explicit SQLAlchemy Session
- Return booleans or roles only (no HTTP exceptions)

Gate functions (``require_*``) resolve a scope and authorize an operation
class, raising ApiError subclasses. Checks run in a fixed order:
1. No caller identity -> E_UNAUTHENTICATED
2. Scope (book / version / node) missing -> 404
3. Caller lacks the role for the operation -> E_FORBIDDEN
4. Mutation against a published version -> E_VERSION_LOCKED

Role semantics:
- Book roles rank viewer < author < editor (book_permissions.role)
- System admins (users.system_role = 'admin') act as editors on every book
- Content edits by an author additionally require an assignment on the node

The gate never mutates state.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from folio.db.models import (
    Book,
    BookPermission,
    BookRole,
    BookVersion,
    SystemRole,
    TocAssignment,
    TocNode,
    User,
    VersionStatus,
)
from folio.errors import (
    ApiError,
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)

ROLE_RANK: dict[BookRole, int] = {
    BookRole.viewer: 1,
    BookRole.author: 2,
    BookRole.editor: 3,
}


class Operation(str, Enum):
    """Operation classes authorized by the gate.

    view: read tree, content, assignments
    edit_content: save/submit content, resolve editor notes
    review_content: request changes, approve
    edit_structure: create/patch/delete/reorder/move nodes, manage assignments
    """

    view = "view"
    edit_content = "edit_content"
    review_content = "review_content"
    edit_structure = "edit_structure"


MUTATING_OPERATIONS = frozenset(
    {Operation.edit_content, Operation.review_content, Operation.edit_structure}
)


@dataclass(frozen=True)
class Access:
    """Result of a successful gate check.

    Attributes:
        book_id: Book that owns the scope.
        role: Effective book role of the caller (admins resolve to editor).
        is_admin: Whether the caller is a system admin.
        version: The resolved version (None for book-scoped checks).
        node: The resolved node (None unless the scope was a node).
    """

    book_id: UUID
    role: BookRole
    is_admin: bool
    version: BookVersion | None = None
    node: TocNode | None = None


# =============================================================================
# Predicates
# =============================================================================


def is_system_admin(session: Session, user_id: UUID) -> bool:
    """Check whether the user holds the platform admin role."""
    stmt = select(
        exists().where(User.id == user_id, User.system_role == SystemRole.admin.value)
    )
    return bool(session.execute(stmt).scalar())


def get_book_role(session: Session, user_id: UUID, book_id: UUID) -> BookRole | None:
    """Return the user's book-level role, or None when not a member."""
    role = session.execute(
        select(BookPermission.role).where(
            BookPermission.book_id == book_id, BookPermission.user_id == user_id
        )
    ).scalar_one_or_none()
    return BookRole(role) if role is not None else None


def has_node_assignment(session: Session, user_id: UUID, node_id: UUID) -> bool:
    """Check whether the user holds any assignment on the node."""
    stmt = select(
        exists().where(TocAssignment.toc_item_id == node_id, TocAssignment.user_id == user_id)
    )
    return bool(session.execute(stmt).scalar())


def role_satisfies(role: BookRole | None, required: BookRole) -> bool:
    """Check whether ``role`` ranks at or above ``required``."""
    if role is None:
        return False
    return ROLE_RANK[role] >= ROLE_RANK[required]


# =============================================================================
# Gate
# =============================================================================


def _require_identity(viewer_id: UUID | None) -> UUID:
    if viewer_id is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer_id


def _effective_role(session: Session, viewer_id: UUID, book_id: UUID) -> tuple[BookRole | None, bool]:
    if is_system_admin(session, viewer_id):
        return BookRole.editor, True
    return get_book_role(session, viewer_id, book_id), False


def _required_role(operation: Operation) -> BookRole:
    if operation in (Operation.edit_structure, Operation.review_content):
        return BookRole.editor
    if operation == Operation.edit_content:
        return BookRole.author
    return BookRole.viewer


def require_book_access(
    session: Session,
    viewer_id: UUID | None,
    book_id: UUID,
    operation: Operation = Operation.view,
) -> Access:
    """Authorize an operation on a book.

    Args:
        session: Database session.
        viewer_id: The caller's user ID (None when unauthenticated).
        book_id: The book ID.
        operation: Operation class being attempted.

    Returns:
        Access describing the caller's role on the book.

    Raises:
        ApiError(E_UNAUTHENTICATED): No caller identity.
        NotFoundError(E_BOOK_NOT_FOUND): Book does not exist.
        ForbiddenError: Caller lacks the required role.
    """
    viewer_id = _require_identity(viewer_id)
    if session.get(Book, book_id) is None:
        raise NotFoundError(ApiErrorCode.E_BOOK_NOT_FOUND, "Book not found")

    role, is_admin = _effective_role(session, viewer_id, book_id)
    required = _required_role(operation)
    if not role_satisfies(role, required):
        raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, f"Book role '{required.value}' required")

    return Access(book_id=book_id, role=role, is_admin=is_admin)


def require_version_access(
    session: Session,
    viewer_id: UUID | None,
    version_id: UUID,
    operation: Operation = Operation.view,
    for_update: bool = False,
) -> Access:
    """Authorize an operation on a book version.

    Args:
        session: Database session.
        viewer_id: The caller's user ID (None when unauthenticated).
        version_id: The version ID.
        operation: Operation class being attempted.
        for_update: Lock the version row (SELECT ... FOR UPDATE).

    Returns:
        Access with the resolved version.

    Raises:
        ApiError(E_UNAUTHENTICATED): No caller identity.
        NotFoundError(E_VERSION_NOT_FOUND): Version does not exist.
        ForbiddenError: Caller lacks the required role.
        ConflictError(E_VERSION_LOCKED): Mutation against a published version.
    """
    viewer_id = _require_identity(viewer_id)

    stmt = select(BookVersion).where(BookVersion.id == version_id)
    if for_update:
        stmt = stmt.with_for_update()
    version = session.execute(stmt).scalar_one_or_none()
    if version is None:
        raise NotFoundError(ApiErrorCode.E_VERSION_NOT_FOUND, "Version not found")

    role, is_admin = _effective_role(session, viewer_id, version.book_id)
    required = _required_role(operation)
    if not role_satisfies(role, required):
        raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, f"Book role '{required.value}' required")

    if operation in MUTATING_OPERATIONS and version.status == VersionStatus.published.value:
        raise ConflictError(
            ApiErrorCode.E_VERSION_LOCKED,
            "Published versions cannot be edited",
            {"version_id": str(version.id)},
        )

    return Access(book_id=version.book_id, role=role, is_admin=is_admin, version=version)


def require_node_access(
    session: Session,
    viewer_id: UUID | None,
    node_id: UUID,
    operation: Operation = Operation.view,
) -> Access:
    """Authorize an operation on a TOC node.

    The node is resolved to its version, then to the owning book. For
    ``edit_content`` a book-level author must also be assigned to the node;
    editors pass without an assignment.

    Args:
        session: Database session.
        viewer_id: The caller's user ID (None when unauthenticated).
        node_id: The TOC node ID.
        operation: Operation class being attempted.

    Returns:
        Access with the resolved version and node.

    Raises:
        ApiError(E_UNAUTHENTICATED): No caller identity.
        NotFoundError(E_NODE_NOT_FOUND): Node (or its version) does not exist.
        ForbiddenError: Caller lacks the required role or assignment.
        ConflictError(E_VERSION_LOCKED): Mutation against a published version.
    """
    viewer_id = _require_identity(viewer_id)

    node = session.get(TocNode, node_id)
    if node is None:
        raise NotFoundError(ApiErrorCode.E_NODE_NOT_FOUND, "TOC node not found")

    access = require_version_access(session, viewer_id, node.book_version_id, operation)

    if (
        operation == Operation.edit_content
        and access.role != BookRole.editor
        and not has_node_assignment(session, viewer_id, node.id)
    ):
        raise ForbiddenError(
            ApiErrorCode.E_FORBIDDEN, "Authors may only edit content of nodes assigned to them"
        )

    return Access(
        book_id=access.book_id,
        role=access.role,
        is_admin=access.is_admin,
        version=access.version,
        node=node,
    )
