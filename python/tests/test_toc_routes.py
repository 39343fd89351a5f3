"""HTTP tests for TOC, content, assignment and version routes.

Requests run through the full stack: auth middleware, routes, services
and the test database.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.factories import (
    BookSetup,
    container_titles,
    create_assignment,
    create_book_with_members,
    create_content,
    create_node,
    get_node_row,
)
from tests.helpers import auth_headers, data_of, error_code


@pytest.fixture
def setup(db_session: Session) -> BookSetup:
    return create_book_with_members(db_session)


class TestTocTreeRoutes:
    """Tests for tree reads and node creation."""

    def test_create_and_list(self, authenticated_client: TestClient, setup: BookSetup):
        """Nodes created over HTTP appear in the tree in order."""
        headers = auth_headers(setup.editor_id)
        url = f"/versions/{setup.version_id}/toc/nodes"

        s1 = authenticated_client.post(url, json={"title": "S1", "kind": "section"}, headers=headers)
        c1 = authenticated_client.post(url, json={"title": "C1"}, headers=headers)
        inner = authenticated_client.post(
            url, json={"title": "Inner", "parent_id": data_of(s1)["id"]}, headers=headers
        )

        assert (s1.status_code, c1.status_code, inner.status_code) == (201, 201, 201)
        assert data_of(c1)["kind"] == "chapter"

        tree = authenticated_client.get(
            f"/versions/{setup.version_id}/toc", headers=auth_headers(setup.viewer_id)
        )
        assert tree.status_code == 200
        assert [n["title"] for n in data_of(tree)["nodes"]] == ["S1", "Inner", "C1"]
        assert data_of(tree)["role"] == "viewer"

    def test_heading_under_section_rejected(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        s1 = create_node(db_session, setup.version_id, "S1", kind="section")

        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/nodes",
            json={"title": "H", "kind": "heading", "parent_id": str(s1)},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_STRUCTURE"
        assert response.json()["error"]["details"]["rule"] == "heading_parent_must_be_chapter"

    def test_blank_title_rejected(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/nodes",
            json={"title": "   "},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 400
        assert error_code(response) == "E_TITLE_INVALID"

    def test_unknown_kind_rejected(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/nodes",
            json={"title": "X", "kind": "part"},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_author_cannot_create(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/nodes",
            json={"title": "C1"},
            headers=auth_headers(setup.author_id),
        )

        assert response.status_code == 403

    def test_outsider_cannot_read(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.get(
            f"/versions/{setup.version_id}/toc", headers=auth_headers(setup.outsider_id)
        )

        assert response.status_code == 403

    def test_unknown_version(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.get(
            f"/versions/{uuid4()}/toc", headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 404
        assert error_code(response) == "E_VERSION_NOT_FOUND"

    def test_published_version_locked(
        self, authenticated_client: TestClient, db_session: Session
    ):
        setup = create_book_with_members(db_session, version_status="published")

        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/nodes",
            json={"title": "C1"},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 409
        assert error_code(response) == "E_VERSION_LOCKED"


class TestTocNodeRoutes:
    """Tests for node reads, patches and deletes."""

    def test_node_detail_and_subtree(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")
        create_node(db_session, setup.version_id, "H1", kind="heading", parent_id=c1)
        headers = auth_headers(setup.viewer_id)

        detail = authenticated_client.get(f"/toc/nodes/{c1}", headers=headers)
        subtree = authenticated_client.get(f"/toc/nodes/{c1}/tree", headers=headers)

        assert data_of(detail)["node"]["title"] == "C1"
        assert data_of(detail)["content"] is None
        assert data_of(detail)["can_edit_content"] is False
        assert data_of(detail)["version_template_id"] is None
        assert [c["title"] for c in data_of(subtree)["children"]] == ["H1"]

    def test_patch_title(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")

        response = authenticated_client.patch(
            f"/toc/nodes/{c1}", json={"title": "Renamed"}, headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 200
        assert data_of(response)["slug"] == "renamed"

    def test_patch_parent_null_moves_to_root(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        """An explicit null parent_id moves the node to the root."""
        s1 = create_node(db_session, setup.version_id, "S1", kind="section")
        c1 = create_node(db_session, setup.version_id, "C1", parent_id=s1)

        response = authenticated_client.patch(
            f"/toc/nodes/{c1}", json={"parent_id": None}, headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 200
        assert data_of(response)["parent_id"] is None
        assert container_titles(db_session, setup.version_id, None) == ["S1", "C1"]

    def test_patch_heading_parent_unsupported(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")
        c2 = create_node(db_session, setup.version_id, "C2")
        h = create_node(db_session, setup.version_id, "H", kind="heading", parent_id=c1)

        response = authenticated_client.patch(
            f"/toc/nodes/{h}", json={"parent_id": str(c2)}, headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 400
        assert error_code(response) == "E_UNSUPPORTED"

    def test_empty_patch_rejected(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")

        response = authenticated_client.patch(
            f"/toc/nodes/{c1}", json={}, headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_delete_returns_204(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")
        create_node(db_session, setup.version_id, "C2")

        response = authenticated_client.delete(
            f"/toc/nodes/{c1}", headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 204
        assert get_node_row(db_session, c1) is None
        assert container_titles(db_session, setup.version_id, None) == ["C2"]

    def test_unknown_node(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.get(
            f"/toc/nodes/{uuid4()}", headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 404
        assert error_code(response) == "E_NODE_NOT_FOUND"


class TestReorderRoutes:
    """Tests for reorder and move-to-section."""

    def test_reorder(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        a = create_node(db_session, setup.version_id, "A")
        b = create_node(db_session, setup.version_id, "B")

        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/reorder",
            json={"parent_id": None, "ordered_ids": [str(b), str(a)]},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 200
        assert [(n["title"], n["order_index"]) for n in data_of(response)["nodes"]] == [
            ("B", 1),
            ("A", 2),
        ]

    def test_empty_batch_names_field(self, authenticated_client: TestClient, setup: BookSetup):
        """Schema failures list the offending field."""
        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/reorder",
            json={"parent_id": None, "ordered_ids": []},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 400
        fields = response.json()["error"]["details"]["fields"]
        assert [f["loc"] for f in fields] == ["body.ordered_ids"]

    def test_mixed_batch_names_heading(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        """A heading inside a chapter batch is rejected and named."""
        p = create_node(db_session, setup.version_id, "P", kind="section")
        a = create_node(db_session, setup.version_id, "A", parent_id=p)
        b = create_node(db_session, setup.version_id, "B", parent_id=p)
        c = create_node(db_session, setup.version_id, "C", kind="heading", parent_id=p)

        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/reorder",
            json={"parent_id": str(p), "ordered_ids": [str(a), str(b), str(c)]},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_BATCH"
        assert response.json()["error"]["details"]["offending_ids"] == [str(c)]

    def test_move_to_section(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        s1 = create_node(db_session, setup.version_id, "S1", kind="section")
        c1 = create_node(db_session, setup.version_id, "C1")
        missing = uuid4()

        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/move-to-section",
            json={"section_id": str(s1), "chapter_ids": [str(c1), str(missing)]},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 200
        data = data_of(response)
        assert data["moved_count"] == 1
        assert data["missing_ids"] == [str(missing)]
        assert container_titles(db_session, setup.version_id, s1) == ["C1"]

    def test_move_to_section_nothing_eligible(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        s1 = create_node(db_session, setup.version_id, "S1", kind="section")

        response = authenticated_client.post(
            f"/versions/{setup.version_id}/toc/move-to-section",
            json={"section_id": str(s1), "chapter_ids": [str(uuid4())]},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 400
        assert error_code(response) == "E_NO_ELIGIBLE_NODES"


class TestContentRoutes:
    """Tests for content workflow routes."""

    def test_author_workflow(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")
        create_assignment(db_session, c1, setup.author_id)
        author = auth_headers(setup.author_id)
        editor = auth_headers(setup.editor_id)

        saved = authenticated_client.put(
            f"/toc/nodes/{c1}/content", json={"content_json": {"type": "doc"}}, headers=author
        )
        submitted = authenticated_client.post(f"/toc/nodes/{c1}/content/submit", headers=author)
        returned = authenticated_client.post(
            f"/toc/nodes/{c1}/content/request-change", json={"note": "More"}, headers=editor
        )
        resolved = authenticated_client.post(
            f"/toc/nodes/{c1}/content/resolve-note", headers=author
        )

        assert data_of(saved)["status"] == "draft"
        assert data_of(submitted)["status"] == "submitted"
        assert data_of(returned)["editor_note"] == "More"
        assert data_of(resolved)["author_resolved"] is True

    def test_request_change_without_body(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")
        create_content(db_session, c1, status="submitted")

        response = authenticated_client.post(
            f"/toc/nodes/{c1}/content/request-change", headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 200
        assert data_of(response)["status"] == "needs_revision"

    def test_invalid_transition_conflict(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")
        create_content(db_session, c1, status="draft")

        response = authenticated_client.post(
            f"/toc/nodes/{c1}/content/approve", headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 409
        assert error_code(response) == "E_INVALID_TRANSITION"

    def test_unassigned_author_forbidden(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")

        response = authenticated_client.put(
            f"/toc/nodes/{c1}/content",
            json={"content_json": {"type": "doc"}},
            headers=auth_headers(setup.author_id),
        )

        assert response.status_code == 403


class TestAssignmentRoutes:
    def test_assign_list_unassign(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        c1 = create_node(db_session, setup.version_id, "C1")
        editor = auth_headers(setup.editor_id)

        created = authenticated_client.post(
            f"/toc/nodes/{c1}/assignments", json={"user_id": str(setup.author_id)}, headers=editor
        )
        listed = authenticated_client.get(f"/toc/nodes/{c1}/assignments", headers=editor)
        removed = authenticated_client.delete(
            f"/toc/nodes/{c1}/assignments/{setup.author_id}", headers=editor
        )

        assert created.status_code == 201
        assert data_of(created)["user"]["id"] == str(setup.author_id)
        assert data_of(created)["user"]["email"].endswith("@example.com")
        assert [a["user_id"] for a in data_of(listed)] == [str(setup.author_id)]
        assert removed.status_code == 204

    def test_members(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.get(
            f"/versions/{setup.version_id}/members", headers=auth_headers(setup.viewer_id)
        )

        assert [m["role"] for m in data_of(response)] == ["editor", "author", "viewer"]


class TestVersionRoutes:
    def test_publish_then_clone(
        self, authenticated_client: TestClient, db_session: Session, setup: BookSetup
    ):
        create_node(db_session, setup.version_id, "C1")

        published = authenticated_client.post(
            f"/versions/{setup.version_id}/publish", headers=auth_headers(setup.admin_id)
        )
        cloned = authenticated_client.post(
            "/versions/clone",
            json={"source_version_id": str(setup.version_id)},
            headers=auth_headers(setup.editor_id),
        )
        listed = authenticated_client.get(
            f"/books/{setup.book_id}/versions", headers=auth_headers(setup.viewer_id)
        )

        assert data_of(published)["status"] == "published"
        assert cloned.status_code == 201
        assert data_of(cloned)["node_count"] == 1
        assert data_of(cloned)["version"]["version_no"] == 2
        assert [v["version_no"] for v in data_of(listed)] == [2, 1]

    def test_second_clone_conflicts(self, authenticated_client: TestClient, setup: BookSetup):
        authenticated_client.post(
            f"/versions/{setup.version_id}/publish", headers=auth_headers(setup.admin_id)
        )
        body = {"book_id": str(setup.book_id)}

        first = authenticated_client.post(
            "/versions/clone", json=body, headers=auth_headers(setup.editor_id)
        )
        second = authenticated_client.post(
            "/versions/clone", json=body, headers=auth_headers(setup.editor_id)
        )

        assert first.status_code == 201
        assert second.status_code == 409
        assert error_code(second) == "E_DRAFT_EXISTS"
        assert second.json()["error"]["details"]["version_id"] == data_of(first)["version"]["id"]

    def test_clone_requires_source(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.post(
            "/versions/clone", json={}, headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 400

    def test_clone_draft_conflict(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.post(
            "/versions/clone",
            json={"source_version_id": str(setup.version_id)},
            headers=auth_headers(setup.editor_id),
        )

        assert response.status_code == 409
        assert error_code(response) == "E_VERSION_NOT_PUBLISHED"

    def test_create_version(self, authenticated_client: TestClient, setup: BookSetup):
        response = authenticated_client.post(
            f"/books/{setup.book_id}/versions", json={}, headers=auth_headers(setup.editor_id)
        )

        assert response.status_code == 201
        assert data_of(response)["version_no"] == 2
