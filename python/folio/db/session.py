"""Database sessions and the transaction helper used by every service.

Sessions never expire attributes on commit: services validate ORM rows into
pydantic models after the transaction closes.

Every mutation runs inside ``transaction(db)``: the permission gate, the
fresh reads the structural rules validate against, and the writes all share
one transaction, so a rejected operation leaves the tree untouched.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from folio.db.engine import get_engine
from folio.errors import ApiError
from folio.logging import get_logger

logger = get_logger(__name__)


def create_session_factory(engine: Any = None) -> sessionmaker[Session]:
    """Create a session factory bound to an engine (the default engine if None)."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


_SessionLocal: sessionmaker[Session] | None = None


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the default session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a request-scoped session."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Commit on success; roll back and re-raise on any exception.

    Domain rejections (ApiError) roll back quietly. Anything else is
    logged before it propagates to the unhandled-exception handler.

    Usage:
        with transaction(db):
            require_version_access(db, viewer_id, version_id, Operation.edit_structure)
            toc_ordering.reorder_container(db, version_id, parent_id, ordered_ids)
    """
    try:
        yield
        db.commit()
    except ApiError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.warning("transaction_rolled_back", error_type=type(e).__name__)
        raise
