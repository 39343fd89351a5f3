"""Content workflow routes.

Routes are transport-only:
- Extract viewer_user_id from request.state
- Call exactly one service function
- Return success(...) or raise ApiError
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.auth.middleware import Viewer, get_viewer
from folio.responses import success_response
from folio.schemas.content import RequestChangeRequest, SaveContentRequest
from folio.services import content as content_service

router = APIRouter()


@router.get("/toc/nodes/{node_id}/content")
def get_content(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get a node's content document and review status."""
    result = content_service.get_content(db, viewer.user_id, node_id)
    return success_response(result.model_dump(mode="json"))


@router.put("/toc/nodes/{node_id}/content")
def save_content(
    node_id: UUID,
    body: SaveContentRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create or replace a node's content. Editors and assigned authors only."""
    result = content_service.save_content(db, viewer.user_id, node_id, body.content_json)
    return success_response(result.model_dump(mode="json"))


@router.post("/toc/nodes/{node_id}/content/submit")
def submit_content(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Submit content for editor review."""
    result = content_service.submit_content(db, viewer.user_id, node_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/toc/nodes/{node_id}/content/request-change")
def request_change(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    body: RequestChangeRequest | None = None,
) -> dict:
    """Send submitted content back to its author. Editors only."""
    note = body.note if body is not None else None
    result = content_service.request_change(db, viewer.user_id, node_id, note=note)
    return success_response(result.model_dump(mode="json"))


@router.post("/toc/nodes/{node_id}/content/approve")
def approve_content(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Approve submitted content. Editors only."""
    result = content_service.approve_content(db, viewer.user_id, node_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/toc/nodes/{node_id}/content/resolve-note")
def resolve_note(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Mark the editor's note as addressed."""
    result = content_service.resolve_note(db, viewer.user_id, node_id)
    return success_response(result.model_dump(mode="json"))
