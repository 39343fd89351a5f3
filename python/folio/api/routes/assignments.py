"""Node assignment routes.

Routes are transport-only:
- Extract viewer_user_id from request.state
- Call exactly one service function
- Return success(...) or raise ApiError
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.auth.middleware import Viewer, get_viewer
from folio.responses import success_response
from folio.schemas.content import CreateAssignmentRequest
from folio.services import assignments as assignments_service

router = APIRouter()


@router.get("/toc/nodes/{node_id}/assignments")
def list_assignments(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List a node's assignments."""
    result = assignments_service.list_assignments(db, viewer.user_id, node_id)
    return success_response([a.model_dump(mode="json") for a in result])


@router.post("/toc/nodes/{node_id}/assignments", status_code=201)
def assign_user(
    node_id: UUID,
    body: CreateAssignmentRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Assign a user to a node. Editors only.

    Non-members of the book are granted the author role.
    """
    result = assignments_service.assign_user(
        db, viewer.user_id, node_id, body.user_id, role_in_item=body.role_in_item
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/toc/nodes/{node_id}/assignments/{user_id}", status_code=204)
def unassign_user(
    node_id: UUID,
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Remove a user's assignment from a node. Editors only."""
    assignments_service.unassign_user(db, viewer.user_id, node_id, user_id)
    return Response(status_code=204)
