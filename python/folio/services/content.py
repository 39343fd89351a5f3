"""Content workflow service.

Each TOC node owns at most one content row. Its review status moves
through a small state machine:

    draft ----------> submitted        (submit, author or editor)
    needs_revision -> submitted        (submit, author or editor)
    submitted ------> needs_revision   (request_change, editor)
    submitted ------> approved         (approve, editor)

Saving never changes status except for the first save, which creates
the row in ``draft``. Resolving a note only flags ``author_resolved``.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from folio.auth.permissions import Operation, require_node_access
from folio.db.models import ContentStatus
from folio.db.session import transaction
from folio.errors import ApiErrorCode, ConflictError, NotFoundError
from folio.logging import get_logger
from folio.schemas.content import TocContentOut
from folio.services import toc_repository as repo

logger = get_logger(__name__)

# action -> (statuses it may start from, status it lands in)
TRANSITIONS: dict[str, tuple[frozenset[ContentStatus], ContentStatus]] = {
    "submit": (
        frozenset({ContentStatus.draft, ContentStatus.needs_revision}),
        ContentStatus.submitted,
    ),
    "request_change": (frozenset({ContentStatus.submitted}), ContentStatus.needs_revision),
    "approve": (frozenset({ContentStatus.submitted}), ContentStatus.approved),
}


def _require_content(db: Session, node_id: UUID):
    content = repo.get_content(db, node_id)
    if content is None:
        raise NotFoundError(ApiErrorCode.E_CONTENT_NOT_FOUND, "Node has no content yet")
    return content


def _check_transition(action: str, current: str) -> ContentStatus:
    allowed, target = TRANSITIONS[action]
    if ContentStatus(current) not in allowed:
        raise ConflictError(
            ApiErrorCode.E_INVALID_TRANSITION,
            f"Cannot {action.replace('_', ' ')} content in status '{current}'",
            {"current_status": current, "action": action},
        )
    return target


def get_content(db: Session, viewer_id: UUID | None, node_id: UUID) -> TocContentOut:
    """Get a node's content.

    Raises:
        NotFoundError: Node or content does not exist.
        ForbiddenError: Viewer has no role on the book.
    """
    require_node_access(db, viewer_id, node_id, Operation.view)
    return TocContentOut.model_validate(_require_content(db, node_id))


def save_content(
    db: Session, viewer_id: UUID | None, node_id: UUID, content_json: Any
) -> TocContentOut:
    """Create or replace a node's content document.

    Args:
        db: Database session.
        viewer_id: The caller's user ID.
        node_id: The node whose content is saved.
        content_json: The rich-text document.

    Returns:
        The saved content.

    Raises:
        NotFoundError: Node does not exist.
        ForbiddenError: Viewer is neither an editor nor an assigned author.
        ConflictError(E_VERSION_LOCKED): Version is published.
    """
    with transaction(db):
        require_node_access(db, viewer_id, node_id, Operation.edit_content)
        existing = repo.get_content(db, node_id)
        if existing is None:
            repo.insert_content(
                db,
                node_id=node_id,
                content_json=content_json,
                status=ContentStatus.draft.value,
                updated_by=viewer_id,
            )
        else:
            repo.update_content(db, node_id, content_json=content_json, updated_by=viewer_id)
        content = repo.get_content(db, node_id)
        result = TocContentOut.model_validate(content)

    logger.info("content_saved", node_id=node_id, created=existing is None)
    return result


def _change_status(
    db: Session,
    viewer_id: UUID | None,
    node_id: UUID,
    action: str,
    operation: Operation,
    **extra: Any,
) -> TocContentOut:
    with transaction(db):
        require_node_access(db, viewer_id, node_id, operation)
        content = _require_content(db, node_id)
        previous = content.status
        target = _check_transition(action, previous)
        repo.update_content(db, node_id, status=target.value, updated_by=viewer_id, **extra)
        result = TocContentOut.model_validate(repo.get_content(db, node_id))

    logger.info(
        "content_status_changed",
        node_id=node_id,
        action=action,
        from_status=previous,
        to_status=target.value,
    )
    return result


def submit_content(db: Session, viewer_id: UUID | None, node_id: UUID) -> TocContentOut:
    """Submit content for review (draft or needs_revision -> submitted).

    Raises:
        NotFoundError: Node or content does not exist.
        ForbiddenError: Viewer is neither an editor nor an assigned author.
        ConflictError: Version is published, or the status does not allow it.
    """
    return _change_status(db, viewer_id, node_id, "submit", Operation.edit_content)


def request_change(
    db: Session, viewer_id: UUID | None, node_id: UUID, note: str | None = None
) -> TocContentOut:
    """Send submitted content back to its author with an optional note.

    Raises:
        NotFoundError: Node or content does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError: Version is published, or content is not submitted.
    """
    note = note.strip() if note else None
    return _change_status(
        db,
        viewer_id,
        node_id,
        "request_change",
        Operation.review_content,
        editor_note=note or None,
        author_resolved=False,
    )


def approve_content(db: Session, viewer_id: UUID | None, node_id: UUID) -> TocContentOut:
    """Approve submitted content.

    Raises:
        NotFoundError: Node or content does not exist.
        ForbiddenError: Viewer is not an editor.
        ConflictError: Version is published, or content is not submitted.
    """
    return _change_status(db, viewer_id, node_id, "approve", Operation.review_content)


def resolve_note(db: Session, viewer_id: UUID | None, node_id: UUID) -> TocContentOut:
    """Mark the editor's note as addressed by the author.

    Only valid while the content is in ``needs_revision``; the status
    itself is unchanged.

    Raises:
        NotFoundError: Node or content does not exist.
        ForbiddenError: Viewer is neither an editor nor an assigned author.
        ConflictError: Version is published, or content is not needs_revision.
    """
    with transaction(db):
        require_node_access(db, viewer_id, node_id, Operation.edit_content)
        content = _require_content(db, node_id)
        if content.status != ContentStatus.needs_revision.value:
            raise ConflictError(
                ApiErrorCode.E_INVALID_TRANSITION,
                "Notes can only be resolved while content needs revision",
                {"current_status": content.status, "action": "resolve_note"},
            )
        repo.update_content(db, node_id, author_resolved=True, updated_by=viewer_id)
        result = TocContentOut.model_validate(repo.get_content(db, node_id))

    logger.info("content_note_resolved", node_id=node_id)
    return result
