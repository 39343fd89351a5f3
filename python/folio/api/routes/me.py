"""Current user endpoint.

Returns information about the authenticated viewer.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.auth.middleware import Viewer, get_viewer
from folio.responses import success_response
from folio.services import users as users_service

router = APIRouter()


@router.get("/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get current user information.

    Returns:
        Success envelope with user_id and system_role.
    """
    result = users_service.get_me(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))
