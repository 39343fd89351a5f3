"""FastAPI application factory.

Wires the Folio API together: error envelopes, auth, request correlation
and the TOC, content, assignment and version routes.

Token verification uses SupabaseJwksVerifier in every environment; only the
env values differ. Tests build the app with ``skip_auth_middleware=True`` and
add AuthMiddleware themselves with a local verifier.

Middleware runs in reverse order of registration, so request-id middleware
is added last (see add_request_id_middleware) and wraps everything:

1. RequestIDMiddleware binds request_id/path/method to the log context
2. AuthMiddleware verifies the token, ensures the user row, sets the viewer
3. Route handler calls one service function
4. RequestIDMiddleware echoes X-Request-ID and logs request_completed
"""

import json
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from folio.api.routes import create_api_router
from folio.auth.middleware import AuthMiddleware
from folio.auth.verifier import SupabaseJwksVerifier
from folio.config import get_settings
from folio.db.session import get_session_factory
from folio.errors import ApiError, ApiErrorCode
from folio.logging import configure_logging, get_logger
from folio.middleware.request_id import RequestIDMiddleware
from folio.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from folio.services.users import ensure_user

configure_logging()

logger = get_logger(__name__)

JSON_BODY_METHODS = ("POST", "PUT", "PATCH")


def create_bootstrap_callback():
    """Return the auth bootstrap: ensure a users row exists for the caller.

    Runs on its own short-lived session, outside the request's session.
    """
    session_factory = get_session_factory()

    def bootstrap(user_id: UUID) -> None:
        db = session_factory()
        try:
            ensure_user(db, user_id)
        finally:
            db.close()

    return bootstrap


def create_token_verifier() -> SupabaseJwksVerifier:
    """Create the Supabase JWKS verifier from settings."""
    settings = get_settings()
    return SupabaseJwksVerifier(
        jwks_url=settings.supabase_jwks_url,  # type: ignore[arg-type]
        issuer=settings.normalized_issuer,  # type: ignore[arg-type]
        audiences=settings.audience_list,
    )


def validation_details(exc: RequestValidationError) -> dict:
    """Summarize pydantic errors as ``{"fields": [{"loc", "msg"}]}``."""
    return {
        "fields": [
            {"loc": ".".join(str(part) for part in error["loc"]), "msg": error["msg"]}
            for error in exc.errors()
        ]
    }


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 E_INVALID_REQUEST with the failing fields."""
    return JSONResponse(
        status_code=400,
        content=error_response(
            ApiErrorCode.E_INVALID_REQUEST, "Invalid request body", details=validation_details(exc)
        ),
    )


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier=None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Folio API",
        description="Table-of-contents engine for collaborative book publishing",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.middleware("http")
    async def reject_malformed_json(request: Request, call_next):
        """Answer 400 for unparseable JSON bodies before routing."""
        if request.method in JSON_BODY_METHODS and "application/json" in request.headers.get(
            "content-type", ""
        ):
            body = await request.body()
            if body:
                try:
                    json.loads(body)
                except json.JSONDecodeError:
                    return JSONResponse(
                        status_code=400,
                        content=error_response(
                            ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                        ),
                    )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            verifier=token_verifier or create_token_verifier(),
            requires_internal_header=settings.requires_internal_header,
            internal_secret=settings.folio_internal_secret,
            bootstrap_callback=create_bootstrap_callback(),
        )
        logger.info(
            "auth_middleware_enabled",
            env=settings.folio_env.value,
            internal_header_required=settings.requires_internal_header,
        )

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware; call after all other middleware.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log one request_completed entry per request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
