"""X-Request-ID middleware for request correlation and tracing.

Extracts (or generates) a request ID, binds it to the logging context
together with the request path and method, echoes it on the response and
emits one ``request_completed`` access log per request.

Middleware Ordering:
- Must be added LAST to run FIRST (FastAPI middleware runs in reverse order)
- Auth failures therefore still carry X-Request-ID
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from folio.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# Alphanumeric, dots, hyphens, underscores (UUIDs also match)
VALID_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

logger = get_logger(__name__)


def is_valid_request_id(value: str) -> bool:
    """Check if value is an acceptable client-supplied request ID.

    Args:
        value: The request ID value to validate.

    Returns:
        True if the value is at most 128 bytes of [A-Za-z0-9._-].
    """
    if len(value.encode("utf-8")) > MAX_REQUEST_ID_LENGTH:
        return False
    return bool(VALID_REQUEST_ID_PATTERN.match(value))


def resolve_request_id(incoming: str | None) -> str:
    """Return the request ID to use for a request.

    Valid incoming IDs are kept; UUIDs are lowercased to canonical form.
    Missing or invalid IDs are replaced with a fresh UUID4.

    Args:
        incoming: Raw X-Request-ID header value, if any.

    Returns:
        The request ID.
    """
    if not incoming or not is_valid_request_id(incoming):
        return str(uuid.uuid4())
    try:
        return str(uuid.UUID(incoming)) if len(incoming) == 36 else incoming
    except ValueError:
        return incoming


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware for X-Request-ID handling and access logging.

    Args:
        app: The ASGI application.
        log_requests: If True, log access entries for each request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request with request ID handling."""
        start_time = time.monotonic()

        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(request_id, path=request.url.path, method=request.method)

        try:
            response = await call_next(request)

            viewer = getattr(request.state, "viewer", None)
            if viewer is not None:
                set_request_context(request_id, viewer_id=str(viewer.user_id))

            response.headers[REQUEST_ID_HEADER] = request_id

            if self.log_requests:
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                )

            return response

        except Exception:
            # unhandled_exception_handler produces the response
            logger.exception("request_failed")
            raise

        finally:
            clear_request_context()
