"""Authentication middleware and the viewer dependency.

Every non-public request must carry ``Authorization: Bearer <jwt>``. In
staging and prod it must also carry ``X-Folio-Internal: <secret>`` (the BFF
adds it; browsers never talk to this API directly).

On success the viewer is attached to ``request.state.viewer`` and bound to
the log context, so every TOC mutation logged by the services names who
made it. The role the viewer holds in a book is resolved later, per
request, by the permission gate.
"""

import hmac
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from folio.auth.verifier import TokenVerifier
from folio.errors import ApiError, ApiErrorCode
from folio.logging import get_logger, set_request_context
from folio.responses import error_response

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"
INTERNAL_HEADER = "x-folio-internal"
BEARER_PREFIX = "bearer "

PUBLIC_PATHS = {"/health", "/health/ready", "/docs", "/redoc", "/openapi.json"}


@dataclass
class Viewer:
    """Authenticated caller; user_id is the token's sub claim."""

    user_id: UUID


class AuthFailure(Exception):
    """Short-circuits dispatch with an error envelope."""

    def __init__(self, code: ApiErrorCode, message: str, status_code: int):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code, content=error_response(self.code, self.message)
        )


class AuthMiddleware(BaseHTTPMiddleware):
    """Bearer-token authentication for every non-public path.

    Checks, in order:
    1. Internal header (when required)
    2. Bearer token present and well-formed
    3. Token verified by the TokenVerifier
    4. Bootstrap callback ensures the users row

    Args:
        app: The ASGI application.
        verifier: TokenVerifier implementation for JWT verification.
        requires_internal_header: Whether to enforce the X-Folio-Internal header.
        internal_secret: The expected internal secret value.
        bootstrap_callback: Called with the user id after a successful verify.
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        requires_internal_header: bool = False,
        internal_secret: str | None = None,
        bootstrap_callback: Callable[[UUID], None] | None = None,
    ):
        super().__init__(app)
        self.verifier = verifier
        self.requires_internal_header = requires_internal_header
        self.internal_secret = internal_secret
        self.bootstrap_callback = bootstrap_callback

    async def dispatch(self, request: Request, call_next):
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        try:
            viewer = self._authenticate(request)
        except AuthFailure as failure:
            return failure.to_response()

        request.state.viewer = viewer
        set_request_context(None, viewer_id=str(viewer.user_id))
        return await call_next(request)

    def _authenticate(self, request: Request) -> Viewer:
        if self.requires_internal_header:
            self._check_internal_header(request)

        token = self._bearer_token(request)
        try:
            claims = self.verifier.verify(token)
        except ApiError as e:
            raise AuthFailure(e.code, e.message, e.status_code) from e

        user_id = UUID(claims["sub"])
        if self.bootstrap_callback is not None:
            try:
                self.bootstrap_callback(user_id)
            except Exception as e:
                logger.exception("user_bootstrap_failed", user_id=user_id)
                raise AuthFailure(ApiErrorCode.E_INTERNAL, "Internal server error", 500) from e

        return Viewer(user_id=user_id)

    def _check_internal_header(self, request: Request) -> None:
        if not self.internal_secret:
            # Settings validation requires the secret wherever the header is enforced
            logger.error("internal_secret_missing")
            raise AuthFailure(ApiErrorCode.E_INTERNAL, "Internal server error", 500)

        supplied = request.headers.get(INTERNAL_HEADER)
        if supplied is not None and hmac.compare_digest(
            supplied.encode(), self.internal_secret.encode()
        ):
            return

        logger.warning(
            "auth_failure",
            reason="internal_header_missing" if supplied is None else "internal_header_mismatch",
        )
        raise AuthFailure(ApiErrorCode.E_INTERNAL_ONLY, "Internal API access required", 403)

    def _bearer_token(self, request: Request) -> str:
        header = request.headers.get(AUTHORIZATION_HEADER)
        if not header:
            reason = "missing_header"
        elif not header.lower().startswith(BEARER_PREFIX):
            reason = "invalid_header_format"
        else:
            token = header[len(BEARER_PREFIX) :].strip()
            if token:
                return token
            reason = "empty_token"

        logger.warning("auth_failure", reason=reason)
        raise AuthFailure(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required", 401)


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency returning the authenticated viewer.

    Raises:
        ApiError(E_UNAUTHENTICATED): No viewer on the request (public path,
            or the middleware is not installed).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer
