"""SQLAlchemy ORM models for Folio.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Enumerated columns are stored as text guarded by CHECK constraints; the
Python enums below are the single source of truth for their values.

Column types are portable (Uuid, JSON with a JSONB variant) so the same
models run against PostgreSQL in production and SQLite in the test suite.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class SystemRole(str, PyEnum):
    """Platform-wide role of a user account."""

    user = "user"
    admin = "admin"


class BookRole(str, PyEnum):
    """Book-level membership roles, lowest to highest privilege."""

    viewer = "viewer"
    author = "author"
    editor = "editor"


class VersionStatus(str, PyEnum):
    """Book version lifecycle states.

    States:
        draft: Mutable working copy
        published: Frozen snapshot; TOC and content are no longer edited
    """

    draft = "draft"
    published = "published"


class TocKind(str, PyEnum):
    """Structural category of a TOC node.

    Nesting (enforced by the structural rule engine):
        section: root only
        chapter: root, or child of a section
        heading: child of a chapter
    """

    section = "section"
    chapter = "chapter"
    heading = "heading"


class ContentStatus(str, PyEnum):
    """Review workflow states of a node's content.

    Transitions:
        draft -> submitted
        submitted -> needs_revision | approved
        needs_revision -> submitted
    """

    draft = "draft"
    submitted = "submitted"
    needs_revision = "needs_revision"
    approved = "approved"


class ItemRole(str, PyEnum):
    """Role a user holds on one specific TOC node."""

    author = "author"
    editor = "editor"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    The user ID matches the Supabase auth user ID (sub claim).
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    system_role: Mapped[str] = mapped_column(
        Text, nullable=False, default=SystemRole.user.value, server_default=SystemRole.user.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("system_role IN ('user', 'admin')", name="ck_users_system_role"),
    )


class Book(Base):
    """Book model - the unit of membership and versioning."""

    __tablename__ = "books"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )


class BookPermission(Base):
    """Book membership - a user's book-level role."""

    __tablename__ = "book_permissions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    book_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("book_id", "user_id", name="uq_book_permissions_book_user"),
        CheckConstraint(
            "role IN ('viewer', 'author', 'editor')",
            name="ck_book_permissions_role",
        ),
    )


class BookVersion(Base):
    """A numbered snapshot of a book's TOC and content."""

    __tablename__ = "book_versions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    book_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    version_no: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=VersionStatus.draft.value,
        server_default=VersionStatus.draft.value,
    )
    template_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    locked_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("book_id", "version_no", name="uq_book_versions_book_version_no"),
        CheckConstraint("version_no >= 1", name="ck_book_versions_version_no_positive"),
        CheckConstraint("status IN ('draft', 'published')", name="ck_book_versions_status"),
    )


class TocNode(Base):
    """A node in a version's table of contents.

    Sibling order is defined by order_index within (book_version_id, parent_id).
    order_index is deliberately not unique at the database level: transient
    duplicates are tolerated and healed by the next renormalization.
    """

    __tablename__ = "toc_nodes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    book_version_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("book_versions.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("toc_nodes.id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('section', 'chapter', 'heading')",
            name="ck_toc_nodes_kind",
        ),
        CheckConstraint("order_index >= 1", name="ck_toc_nodes_order_index_positive"),
        CheckConstraint("length(trim(title)) >= 1", name="ck_toc_nodes_title_not_blank"),
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_toc_nodes_not_self_parent"),
        Index("ix_toc_nodes_container", "book_version_id", "parent_id", "order_index"),
    )


class TocContent(Base):
    """Content payload bound 1:1 to a TOC node."""

    __tablename__ = "toc_contents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    toc_item_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("toc_nodes.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    content_json: Mapped[Any] = mapped_column(JSONDocument, nullable=False)
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=ContentStatus.draft.value,
        server_default=ContentStatus.draft.value,
    )
    editor_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    author_resolved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    updated_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'needs_revision', 'approved')",
            name="ck_toc_contents_status",
        ),
    )


class TocAssignment(Base):
    """Per-node role binding between a user and a TOC node."""

    __tablename__ = "toc_assignments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    toc_item_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("toc_nodes.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_in_item: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    # Assignee profile, loaded with every assignment read
    user: Mapped["User"] = relationship("User", lazy="joined")

    __table_args__ = (
        UniqueConstraint("toc_item_id", "user_id", name="uq_toc_assignments_item_user"),
        CheckConstraint(
            "role_in_item IN ('author', 'editor')",
            name="ck_toc_assignments_role_in_item",
        ),
    )
