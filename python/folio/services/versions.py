"""Book version service.

Versions are numbered per book starting at 1. A new version starts as a
``draft``; publishing locks it for good. Cloning lives in
folio.services.version_clone.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from folio.auth.permissions import (
    Operation,
    is_system_admin,
    require_book_access,
)
from folio.db.models import Book, BookVersion, VersionStatus
from folio.db.session import transaction
from folio.errors import (
    ApiError,
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from folio.logging import get_logger
from folio.schemas.version import BookVersionOut

logger = get_logger(__name__)


def next_version_no(db: Session, book_id: UUID) -> int:
    """Return the next version number for a book.

    Callers must hold the book row lock (SELECT ... FOR UPDATE).
    """
    current = db.execute(
        select(func.max(BookVersion.version_no)).where(BookVersion.book_id == book_id)
    ).scalar()
    return (current or 0) + 1


def lock_book(db: Session, book_id: UUID) -> Book:
    """Lock a book row for version numbering."""
    book = db.execute(
        select(Book).where(Book.id == book_id).with_for_update()
    ).scalar_one_or_none()
    if book is None:
        raise NotFoundError(ApiErrorCode.E_BOOK_NOT_FOUND, "Book not found")
    return book


def list_versions(db: Session, viewer_id: UUID | None, book_id: UUID) -> list[BookVersionOut]:
    """List a book's versions, newest first.

    Raises:
        NotFoundError: Book does not exist.
        ForbiddenError: Viewer has no role on the book.
    """
    require_book_access(db, viewer_id, book_id, Operation.view)
    versions = db.execute(
        select(BookVersion)
        .where(BookVersion.book_id == book_id)
        .order_by(BookVersion.version_no.desc())
    ).scalars()
    return [BookVersionOut.model_validate(v) for v in versions]


def create_version(
    db: Session, viewer_id: UUID | None, book_id: UUID, template_id: UUID | None = None
) -> BookVersionOut:
    """Create an empty draft version with the next version number.

    Raises:
        NotFoundError: Book does not exist.
        ForbiddenError: Viewer is not an editor.
    """
    with transaction(db):
        require_book_access(db, viewer_id, book_id, Operation.edit_structure)
        lock_book(db, book_id)
        version = BookVersion(
            book_id=book_id,
            version_no=next_version_no(db, book_id),
            status=VersionStatus.draft.value,
            template_id=template_id,
            created_by=viewer_id,
        )
        db.add(version)
        db.flush()
        result = BookVersionOut.model_validate(version)

    logger.info(
        "version_created",
        version_id=result.id,
        book_id=book_id,
        version_no=result.version_no,
    )
    return result


def publish_version(db: Session, viewer_id: UUID | None, version_id: UUID) -> BookVersionOut:
    """Publish a draft version. Only system admins may publish.

    Raises:
        ApiError(E_UNAUTHENTICATED): No caller identity.
        ForbiddenError: Viewer is not a system admin.
        NotFoundError: Version does not exist.
        ConflictError(E_VERSION_LOCKED): Version is already published.
    """
    if viewer_id is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")

    with transaction(db):
        if not is_system_admin(db, viewer_id):
            raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, "Only admins can publish versions")

        version = db.execute(
            select(BookVersion).where(BookVersion.id == version_id).with_for_update()
        ).scalar_one_or_none()
        if version is None:
            raise NotFoundError(ApiErrorCode.E_VERSION_NOT_FOUND, "Version not found")
        if version.status == VersionStatus.published.value:
            raise ConflictError(
                ApiErrorCode.E_VERSION_LOCKED,
                "Version is already published",
                {"version_id": str(version.id)},
            )

        version.status = VersionStatus.published.value
        version.locked_by = viewer_id
        version.locked_at = datetime.now(UTC)
        db.flush()
        result = BookVersionOut.model_validate(version)

    logger.info("version_published", version_id=version_id, book_id=result.book_id)
    return result
