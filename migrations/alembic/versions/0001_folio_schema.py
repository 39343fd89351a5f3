"""Folio schema - users, books, permissions, versions, TOC nodes, contents, assignments

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the book/version/TOC schema. Sibling order lives in
toc_nodes.order_index within (book_version_id, parent_id) and is
intentionally not unique: the application renormalizes containers.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        sa.UUID(),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _created_at_column() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    # Enable pgcrypto extension for gen_random_uuid()
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("system_role", sa.Text(), server_default="user", nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("system_role IN ('user', 'admin')", name="ck_users_system_role"),
    )

    # ==========================================================================
    # books table
    # ==========================================================================
    op.create_table(
        "books",
        _id_column(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
    )

    # ==========================================================================
    # book_permissions table
    # ==========================================================================
    op.create_table(
        "book_permissions",
        _id_column(),
        sa.Column("book_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("book_id", "user_id", name="uq_book_permissions_book_user"),
        sa.CheckConstraint(
            "role IN ('viewer', 'author', 'editor')",
            name="ck_book_permissions_role",
        ),
    )

    # ==========================================================================
    # book_versions table
    # ==========================================================================
    op.create_table(
        "book_versions",
        _id_column(),
        sa.Column("book_id", sa.UUID(), nullable=False),
        sa.Column("version_no", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), server_default="draft", nullable=False),
        sa.Column("template_id", sa.UUID(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        _created_at_column(),
        sa.Column("locked_by", sa.UUID(), nullable=True),
        sa.Column("locked_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["locked_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("book_id", "version_no", name="uq_book_versions_book_version_no"),
        sa.CheckConstraint("version_no >= 1", name="ck_book_versions_version_no_positive"),
        sa.CheckConstraint("status IN ('draft', 'published')", name="ck_book_versions_status"),
    )

    # ==========================================================================
    # toc_nodes table
    # ==========================================================================
    op.create_table(
        "toc_nodes",
        _id_column(),
        sa.Column("book_version_id", sa.UUID(), nullable=False),
        sa.Column("parent_id", sa.UUID(), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        _created_at_column(),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_version_id"], ["book_versions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_id"], ["toc_nodes.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "kind IN ('section', 'chapter', 'heading')",
            name="ck_toc_nodes_kind",
        ),
        sa.CheckConstraint("order_index >= 1", name="ck_toc_nodes_order_index_positive"),
        sa.CheckConstraint("length(trim(title)) >= 1", name="ck_toc_nodes_title_not_blank"),
        sa.CheckConstraint(
            "parent_id IS NULL OR parent_id <> id", name="ck_toc_nodes_not_self_parent"
        ),
    )

    op.create_index(
        "ix_toc_nodes_container",
        "toc_nodes",
        ["book_version_id", "parent_id", "order_index"],
    )

    # ==========================================================================
    # toc_contents table
    # ==========================================================================
    op.create_table(
        "toc_contents",
        _id_column(),
        sa.Column("toc_item_id", sa.UUID(), nullable=False),
        sa.Column("content_json", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.Text(), server_default="draft", nullable=False),
        sa.Column("editor_note", sa.Text(), nullable=True),
        sa.Column("author_resolved", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("updated_by", sa.UUID(), nullable=True),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["toc_item_id"], ["toc_nodes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["updated_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("toc_item_id", name="uq_toc_contents_toc_item_id"),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'needs_revision', 'approved')",
            name="ck_toc_contents_status",
        ),
    )

    # ==========================================================================
    # toc_assignments table
    # ==========================================================================
    op.create_table(
        "toc_assignments",
        _id_column(),
        sa.Column("toc_item_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role_in_item", sa.Text(), nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["toc_item_id"], ["toc_nodes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("toc_item_id", "user_id", name="uq_toc_assignments_item_user"),
        sa.CheckConstraint(
            "role_in_item IN ('author', 'editor')",
            name="ck_toc_assignments_role_in_item",
        ),
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("toc_assignments")
    op.drop_table("toc_contents")
    op.drop_index("ix_toc_nodes_container", table_name="toc_nodes")
    op.drop_table("toc_nodes")
    op.drop_table("book_versions")
    op.drop_table("book_permissions")
    op.drop_table("books")
    op.drop_table("users")
