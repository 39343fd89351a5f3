"""Book version routes.

Routes are transport-only:
- Extract viewer_user_id from request.state
- Call exactly one service function
- Return success(...) or raise ApiError

IMPORTANT: The static route /versions/clone must be registered BEFORE
dynamic routes (/versions/{version_id}) to prevent UUID path capture.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.auth.middleware import Viewer, get_viewer
from folio.responses import success_response
from folio.schemas.version import CloneVersionRequest, CreateVersionRequest
from folio.services import assignments as assignments_service
from folio.services import version_clone as clone_service
from folio.services import versions as versions_service

router = APIRouter()


@router.post("/versions/clone", status_code=201)
def clone_version(
    body: CloneVersionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Clone a published version into a new draft version.

    With only book_id, the book's latest published version is cloned.
    """
    result = clone_service.clone_version(
        db, viewer.user_id, source_version_id=body.source_version_id, book_id=body.book_id
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/books/{book_id}/versions")
def list_versions(
    book_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List a book's versions, newest first."""
    result = versions_service.list_versions(db, viewer.user_id, book_id)
    return success_response([v.model_dump(mode="json") for v in result])


@router.post("/books/{book_id}/versions", status_code=201)
def create_version(
    book_id: UUID,
    body: CreateVersionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create an empty draft version. Editors and admins only."""
    result = versions_service.create_version(
        db, viewer.user_id, book_id, template_id=body.template_id
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/versions/{version_id}/publish")
def publish_version(
    version_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Publish a draft version. System admins only."""
    result = versions_service.publish_version(db, viewer.user_id, version_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/versions/{version_id}/members")
def list_members(
    version_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List the members of the book that owns the version."""
    result = assignments_service.list_version_members(db, viewer.user_id, version_id)
    return success_response([m.model_dump(mode="json") for m in result])
