"""Readiness checks."""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from folio.errors import ApiError, ApiErrorCode
from folio.logging import get_logger

logger = get_logger(__name__)


def check_database(db: Session) -> None:
    """Run a trivial query.

    Raises:
        ApiError(E_DATABASE_UNAVAILABLE): The database did not answer.
    """
    try:
        db.execute(select(1)).scalar_one()
    except SQLAlchemyError as e:
        logger.warning("database_unavailable", error_type=type(e).__name__)
        raise ApiError(ApiErrorCode.E_DATABASE_UNAVAILABLE, "Database unavailable") from e
