"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from folio.api.routes.assignments import router as assignments_router
from folio.api.routes.content import router as content_router
from folio.api.routes.health import router as health_router
from folio.api.routes.me import router as me_router
from folio.api.routes.toc import router as toc_router
from folio.api.routes.versions import router as versions_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(versions_router, tags=["versions"])
    api_router.include_router(toc_router, tags=["toc"])
    api_router.include_router(content_router, tags=["content"])
    api_router.include_router(assignments_router, tags=["assignments"])
    return api_router


__all__ = ["create_api_router"]
