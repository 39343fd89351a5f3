"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
Structural failures carry a ``details`` mapping (rule name, offending ids,
failed step) so clients can render an actionable message.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Any
from uuid import UUID


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_INTERNAL_ONLY = "E_INTERNAL_ONLY"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_BOOK_NOT_FOUND = "E_BOOK_NOT_FOUND"
    E_VERSION_NOT_FOUND = "E_VERSION_NOT_FOUND"
    E_NODE_NOT_FOUND = "E_NODE_NOT_FOUND"
    E_CONTENT_NOT_FOUND = "E_CONTENT_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_TITLE_INVALID = "E_TITLE_INVALID"
    E_INVALID_STRUCTURE = "E_INVALID_STRUCTURE"
    E_INVALID_BATCH = "E_INVALID_BATCH"
    E_UNSUPPORTED = "E_UNSUPPORTED"
    E_NO_ELIGIBLE_NODES = "E_NO_ELIGIBLE_NODES"

    # State conflicts (409)
    E_VERSION_LOCKED = "E_VERSION_LOCKED"
    E_VERSION_NOT_PUBLISHED = "E_VERSION_NOT_PUBLISHED"
    E_DRAFT_EXISTS = "E_DRAFT_EXISTS"
    E_INVALID_TRANSITION = "E_INVALID_TRANSITION"
    E_CYCLE_DETECTED = "E_CYCLE_DETECTED"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_DATABASE_UNAVAILABLE = "E_DATABASE_UNAVAILABLE"  # 503
    E_CLONE_FAILED = "E_CLONE_FAILED"  # 500
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_INTERNAL_ONLY: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_BOOK_NOT_FOUND: 404,
    ApiErrorCode.E_VERSION_NOT_FOUND: 404,
    ApiErrorCode.E_NODE_NOT_FOUND: 404,
    ApiErrorCode.E_CONTENT_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_TITLE_INVALID: 400,
    ApiErrorCode.E_INVALID_STRUCTURE: 400,
    ApiErrorCode.E_INVALID_BATCH: 400,
    ApiErrorCode.E_UNSUPPORTED: 400,
    ApiErrorCode.E_NO_ELIGIBLE_NODES: 400,
    ApiErrorCode.E_VERSION_LOCKED: 409,
    ApiErrorCode.E_VERSION_NOT_PUBLISHED: 409,
    ApiErrorCode.E_DRAFT_EXISTS: 409,
    ApiErrorCode.E_INVALID_TRANSITION: 409,
    ApiErrorCode.E_CYCLE_DETECTED: 409,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_DATABASE_UNAVAILABLE: 503,
    ApiErrorCode.E_CLONE_FAILED: 500,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        details: Optional structured context (JSON-serializable)
    """

    def __init__(
        self, code: ApiErrorCode, message: str, details: dict[str, Any] | None = None
    ):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        self.details = details
        super().__init__(message)


def _id_list(ids: Iterable[UUID]) -> list[str]:
    return [str(i) for i in ids]


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class ConflictError(ApiError):
    """Request conflicts with the current state of the resource."""

    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code, message, details)


class InvalidStructureError(ApiError):
    """A node kind/parent compatibility rule was violated.

    Attributes:
        rule: Short machine-readable name of the violated rule.
    """

    def __init__(self, rule: str, message: str, node_id: UUID | None = None):
        details: dict[str, Any] = {"rule": rule}
        if node_id is not None:
            details["node_id"] = str(node_id)
        super().__init__(ApiErrorCode.E_INVALID_STRUCTURE, message, details)
        self.rule = rule


class InvalidBatchError(ApiError):
    """A reorder batch is inconsistent.

    Attributes:
        rule: Short machine-readable name of the violated rule.
        offending_ids: The ids that caused the batch to be rejected.
    """

    def __init__(self, rule: str, message: str, offending_ids: Iterable[UUID] = ()):
        self.rule = rule
        self.offending_ids = list(offending_ids)
        super().__init__(
            ApiErrorCode.E_INVALID_BATCH,
            message,
            {"rule": rule, "offending_ids": _id_list(self.offending_ids)},
        )


class UnsupportedOperationError(ApiError):
    """The requested mutation is not supported by the tree engine."""

    def __init__(self, message: str, node_id: UUID | None = None):
        details = {"node_id": str(node_id)} if node_id is not None else None
        super().__init__(ApiErrorCode.E_UNSUPPORTED, message, details)


class NoEligibleNodesError(ApiError):
    """A bulk move filtered down to zero eligible nodes."""

    def __init__(
        self,
        message: str = "No eligible chapters to move",
        missing_ids: Iterable[UUID] = (),
        skipped_ids: Iterable[UUID] = (),
    ):
        super().__init__(
            ApiErrorCode.E_NO_ELIGIBLE_NODES,
            message,
            {"missing_ids": _id_list(missing_ids), "skipped_ids": _id_list(skipped_ids)},
        )


class CycleDetectedError(ApiError):
    """A parent-pointer chain loops back on itself."""

    def __init__(self, message: str, node_ids: Iterable[UUID] = ()):
        self.node_ids = list(node_ids)
        super().__init__(
            ApiErrorCode.E_CYCLE_DETECTED, message, {"node_ids": _id_list(self.node_ids)}
        )


class CloneError(ApiError):
    """A version clone failed part-way.

    Attributes:
        step: The clone step that failed ("version", "node", "content", "assignment").
        source_id: The source row being copied when the failure happened.
    """

    def __init__(self, step: str, message: str, source_id: UUID | None = None):
        self.step = step
        self.source_id = source_id
        details: dict[str, Any] = {"step": step}
        if source_id is not None:
            details["source_id"] = str(source_id)
        super().__init__(ApiErrorCode.E_CLONE_FAILED, message, details)
