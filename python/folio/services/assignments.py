"""Node assignment service.

An assignment binds a user to a TOC node with a role_in_item. Assigning
someone who is not yet a member of the book also grants them the
``author`` book role; existing book roles are left untouched. Removing an
assignment never removes book membership.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from folio.auth.permissions import (
    Operation,
    get_book_role,
    require_node_access,
    require_version_access,
)
from folio.db.models import BookPermission, BookRole, ItemRole, User
from folio.db.session import transaction
from folio.errors import ApiErrorCode, NotFoundError
from folio.logging import get_logger
from folio.schemas.content import AssignmentOut, BookMemberOut
from folio.services import toc_repository as repo

logger = get_logger(__name__)


def list_assignments(db: Session, viewer_id: UUID | None, node_id: UUID) -> list[AssignmentOut]:
    """List a node's assignments.

    Raises:
        NotFoundError: Node does not exist.
        ForbiddenError: Viewer has no role on the book.
    """
    require_node_access(db, viewer_id, node_id, Operation.view)
    return [AssignmentOut.model_validate(a) for a in repo.list_assignments(db, node_id)]


def assign_user(
    db: Session,
    viewer_id: UUID | None,
    node_id: UUID,
    user_id: UUID,
    role_in_item: ItemRole | str = ItemRole.author,
) -> AssignmentOut:
    """Assign a user to a node, or change the role of an existing assignment.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        node_id: The node to assign.
        user_id: The assignee.
        role_in_item: author or editor.

    Returns:
        The assignment.

    Raises:
        NotFoundError: Node or user does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError(E_VERSION_LOCKED): Version is published.
    """
    role_in_item = ItemRole(role_in_item)

    with transaction(db):
        access = require_node_access(db, viewer_id, node_id, Operation.edit_structure)

        if db.get(User, user_id) is None:
            raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

        granted = False
        if get_book_role(db, user_id, access.book_id) is None:
            db.add(
                BookPermission(book_id=access.book_id, user_id=user_id, role=BookRole.author.value)
            )
            db.flush()
            granted = True

        if repo.get_assignment(db, node_id, user_id) is None:
            repo.insert_assignment(
                db, node_id=node_id, user_id=user_id, role_in_item=role_in_item.value
            )
        else:
            repo.update_assignment_role(db, node_id, user_id, role_in_item.value)

        result = AssignmentOut.model_validate(repo.get_assignment(db, node_id, user_id))

    logger.info(
        "toc_assignment_saved",
        node_id=node_id,
        user_id=user_id,
        role_in_item=role_in_item.value,
        book_role_granted=granted,
    )
    return result


def unassign_user(db: Session, viewer_id: UUID | None, node_id: UUID, user_id: UUID) -> None:
    """Remove a user's assignment from a node. Removing a missing one is a no-op.

    Raises:
        NotFoundError: Node does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError(E_VERSION_LOCKED): Version is published.
    """
    with transaction(db):
        require_node_access(db, viewer_id, node_id, Operation.edit_structure)
        removed = repo.delete_assignment(db, node_id, user_id)

    logger.info("toc_assignment_removed", node_id=node_id, user_id=user_id, removed=removed)


def list_version_members(
    db: Session, viewer_id: UUID | None, version_id: UUID
) -> list[BookMemberOut]:
    """List the members of the book that owns a version.

    Members are ordered by role (editors first), then by email.

    Raises:
        NotFoundError: Version does not exist.
        ForbiddenError: Viewer has no role on the book.
    """
    access = require_version_access(db, viewer_id, version_id, Operation.view)
    rows = db.execute(
        select(BookPermission.user_id, BookPermission.role, User.email, User.display_name)
        .join(User, User.id == BookPermission.user_id)
        .where(BookPermission.book_id == access.book_id)
    ).all()

    rank = {BookRole.editor.value: 0, BookRole.author.value: 1, BookRole.viewer.value: 2}
    rows = sorted(rows, key=lambda row: (rank[row.role], row.email or "", str(row.user_id)))
    return [
        BookMemberOut(
            user_id=row.user_id, role=row.role, email=row.email, display_name=row.display_name
        )
        for row in rows
    ]
