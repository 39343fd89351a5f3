"""Database module for Folio.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from folio.db.engine import create_db_engine, get_engine
from folio.db.models import (
    Base,
    Book,
    BookPermission,
    BookRole,
    BookVersion,
    ContentStatus,
    ItemRole,
    SystemRole,
    TocAssignment,
    TocContent,
    TocKind,
    TocNode,
    User,
    VersionStatus,
)
from folio.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "SystemRole",
    "BookRole",
    "VersionStatus",
    "TocKind",
    "ContentStatus",
    "ItemRole",
    # Models
    "User",
    "Book",
    "BookPermission",
    "BookVersion",
    "TocNode",
    "TocContent",
    "TocAssignment",
]
