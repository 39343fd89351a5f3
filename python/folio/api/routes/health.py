"""Health check endpoints.

Both are public: no bearer token and no internal header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from folio.api.deps import get_db
from folio.responses import success_response
from folio.services import health as health_service

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness: 200 while the process is serving requests."""
    return success_response({"status": "ok"})


@router.get("/health/ready")
def readiness_check(db: Annotated[Session, Depends(get_db)]) -> dict:
    """Readiness: 200 once the database answers, 503 otherwise."""
    health_service.check_database(db)
    return success_response({"status": "ok", "database": "ok"})
