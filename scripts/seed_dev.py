#!/usr/bin/env python
"""Seed development database with a demo book.

Seeds one editor, one author, a book with a draft version 1 and a small
table of contents for local UI testing.

Constraints:
- Refuses to run in staging or prod (FOLIO_ENV check)
- Idempotent via ON CONFLICT DO NOTHING
- Never runs automatically (manual invocation only)

Usage:
    make seed

    # Or directly:
    cd python && DATABASE_URL=... uv run python ../scripts/seed_dev.py
"""

import os
import sys

SEED_EDITOR_ID = "00000000-0000-4000-8000-000000000001"
SEED_AUTHOR_ID = "00000000-0000-4000-8000-000000000002"
SEED_BOOK_ID = "00000000-0000-4000-8000-000000000010"
SEED_VERSION_ID = "00000000-0000-4000-8000-000000000020"

# (id, parent_id, title, kind, order_index)
SEED_NODES = [
    ("00000000-0000-4000-8000-000000000101", None, "Part One", "section", 1),
    (
        "00000000-0000-4000-8000-000000000102",
        "00000000-0000-4000-8000-000000000101",
        "Getting Started",
        "chapter",
        1,
    ),
    (
        "00000000-0000-4000-8000-000000000103",
        "00000000-0000-4000-8000-000000000102",
        "Installing",
        "heading",
        1,
    ),
    ("00000000-0000-4000-8000-000000000104", None, "Appendix", "chapter", 2),
]


def main():
    # 1. Environment check (hard fail in staging/prod)
    folio_env = os.getenv("FOLIO_ENV", "local")
    if folio_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in FOLIO_ENV={folio_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        print("Run: make seed")
        sys.exit(1)

    from sqlalchemy import create_engine, text

    from folio.services.slug import slugify

    engine = create_engine(database_url)

    with engine.connect() as conn:
        # 3. Idempotent seeding
        for user_id, name in ((SEED_EDITOR_ID, "Demo Editor"), (SEED_AUTHOR_ID, "Demo Author")):
            conn.execute(
                text("""
                    INSERT INTO users (id, display_name, system_role)
                    VALUES (:id, :name, 'user')
                    ON CONFLICT (id) DO NOTHING
                """),
                {"id": user_id, "name": name},
            )

        result = conn.execute(
            text("""
                INSERT INTO books (id, title, slug, created_by)
                VALUES (:id, 'Demo Book', 'demo-book', :editor_id)
                ON CONFLICT (id) DO NOTHING
                RETURNING id
            """),
            {"id": SEED_BOOK_ID, "editor_id": SEED_EDITOR_ID},
        )
        book_created = result.fetchone() is not None

        for user_id, role in ((SEED_EDITOR_ID, "editor"), (SEED_AUTHOR_ID, "author")):
            conn.execute(
                text("""
                    INSERT INTO book_permissions (id, book_id, user_id, role)
                    VALUES (gen_random_uuid(), :book_id, :user_id, :role)
                    ON CONFLICT (book_id, user_id) DO NOTHING
                """),
                {"book_id": SEED_BOOK_ID, "user_id": user_id, "role": role},
            )

        conn.execute(
            text("""
                INSERT INTO book_versions (id, book_id, version_no, status, created_by)
                VALUES (:id, :book_id, 1, 'draft', :editor_id)
                ON CONFLICT (id) DO NOTHING
            """),
            {"id": SEED_VERSION_ID, "book_id": SEED_BOOK_ID, "editor_id": SEED_EDITOR_ID},
        )

        nodes_created = 0
        for node_id, parent_id, title, kind, order_index in SEED_NODES:
            result = conn.execute(
                text("""
                    INSERT INTO toc_nodes
                        (id, book_version_id, parent_id, title, slug, kind, order_index)
                    VALUES (:id, :version_id, :parent_id, :title, :slug, :kind, :order_index)
                    ON CONFLICT (id) DO NOTHING
                    RETURNING id
                """),
                {
                    "id": node_id,
                    "version_id": SEED_VERSION_ID,
                    "parent_id": parent_id,
                    "title": title,
                    "slug": slugify(title),
                    "kind": kind,
                    "order_index": order_index,
                },
            )
            nodes_created += result.fetchone() is not None

        conn.commit()

    # 4. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"FOLIO_ENV: {folio_env}")
    print()
    print(f"{'✓ Created' if book_created else '• Exists'}: book {SEED_BOOK_ID}")
    print(f"✓ Created {nodes_created} of {len(SEED_NODES)} TOC nodes in version {SEED_VERSION_ID}")
    print()
    print(f"Sign in as {SEED_EDITOR_ID} (editor) or {SEED_AUTHOR_ID} (author).")


if __name__ == "__main__":
    main()
