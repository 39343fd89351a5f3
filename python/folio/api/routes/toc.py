"""TOC routes.

Routes are transport-only:
- Extract viewer_user_id from request.state
- Call exactly one service function
- Return success(...) or raise ApiError

No domain logic or raw DB access in routes.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.auth.middleware import Viewer, get_viewer
from folio.responses import success_response
from folio.schemas.toc import (
    CreateTocNodeRequest,
    MoveToSectionRequest,
    PatchTocNodeRequest,
    ReorderTocRequest,
)
from folio.services import toc as toc_service

router = APIRouter()


# =============================================================================
# Version-scoped routes
# =============================================================================


@router.get("/versions/{version_id}/toc")
def get_toc_tree(
    version_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """List every node of a version, ordered by (order_index, created_at, id)."""
    result = toc_service.list_tree(db, viewer.user_id, version_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/versions/{version_id}/toc/nodes", status_code=201)
def create_toc_node(
    version_id: UUID,
    body: CreateTocNodeRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a node at the end of its container. Editors only."""
    result = toc_service.create_node(
        db, viewer.user_id, version_id, body.title, kind=body.kind, parent_id=body.parent_id
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/versions/{version_id}/toc/reorder")
def reorder_toc(
    version_id: UUID,
    body: ReorderTocRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Reorder the children of one container. Editors only."""
    result = toc_service.reorder_nodes(
        db, viewer.user_id, version_id, body.parent_id, body.ordered_ids
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/versions/{version_id}/toc/move-to-section")
def move_to_section(
    version_id: UUID,
    body: MoveToSectionRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Move root chapters into a root section. Editors only.

    Ids that do not exist or are not root chapters are reported, not moved.
    """
    result = toc_service.move_chapters_to_section(
        db,
        viewer.user_id,
        version_id,
        body.section_id,
        body.chapter_ids,
        caller_order=body.caller_order,
    )
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Node-scoped routes
# =============================================================================


@router.get("/toc/nodes/{node_id}")
def get_toc_node(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get a node with its content, assignments and the viewer's role."""
    result = toc_service.get_node_detail(db, viewer.user_id, node_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/toc/nodes/{node_id}/tree")
def get_toc_subtree(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get a node and its descendants as a nested tree."""
    result = toc_service.get_subtree(db, viewer.user_id, node_id)
    return success_response(result.model_dump(mode="json"))


@router.patch("/toc/nodes/{node_id}")
def patch_toc_node(
    node_id: UUID,
    body: PatchTocNodeRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Rename and/or reparent a node. Editors only.

    An explicit ``"parent_id": null`` moves the node to the root.
    """
    result = toc_service.patch_node(
        db,
        viewer.user_id,
        node_id,
        title=body.title,
        parent_id=body.parent_id,
        update_parent=body.parent_id_set,
    )
    return success_response(result.model_dump(mode="json"))


@router.delete("/toc/nodes/{node_id}", status_code=204)
def delete_toc_node(
    node_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a node with its subtree, content and assignments. Editors only."""
    toc_service.delete_node(db, viewer.user_id, node_id)
    return Response(status_code=204)
