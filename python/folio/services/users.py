"""User bootstrap and identity service.

Users are created lazily on their first authenticated request; the user
ID is the JWT ``sub`` claim.
"""

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from folio.db.models import User
from folio.db.session import transaction
from folio.errors import ApiError, ApiErrorCode, NotFoundError
from folio.logging import get_logger
from folio.schemas.version import MeOut

logger = get_logger(__name__)


def ensure_user(db: Session, user_id: UUID) -> None:
    """Ensure a users row exists for the authenticated caller.

    Idempotent and safe under concurrent first requests: losing the insert
    race is detected via IntegrityError and resolved by re-reading.

    Args:
        db: Database session.
        user_id: The user's ID (from JWT sub claim).

    Raises:
        IntegrityError: The insert failed and no row exists afterwards.
    """
    try:
        with transaction(db):
            if db.get(User, user_id) is None:
                db.add(User(id=user_id))
                db.flush()
                logger.info("user_created", user_id=user_id)
    except IntegrityError:
        # Lost race: another request inserted the row first
        if db.get(User, user_id) is None:
            logger.error("user_missing_after_insert_race", user_id=user_id)
            raise
        logger.info("user_insert_race_resolved", user_id=user_id)


def get_me(db: Session, viewer_id: UUID | None) -> MeOut:
    """Return the authenticated caller's identity and system role.

    Raises:
        ApiError(E_UNAUTHENTICATED): No caller identity.
        NotFoundError(E_USER_NOT_FOUND): The caller has no users row.
    """
    if viewer_id is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    user = db.get(User, viewer_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return MeOut(
        user_id=user.id,
        system_role=user.system_role,
        email=user.email,
        display_name=user.display_name,
    )
