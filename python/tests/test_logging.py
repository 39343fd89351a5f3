"""Tests for structured logging helpers.

Tests cover:
- UUID values rendered as strings
- Request context binding, partial updates and clearing
- TOC context scoped to a block
"""

from uuid import uuid4

import pytest
from structlog.contextvars import get_contextvars

from folio.logging import (
    clear_request_context,
    get_request_id,
    set_request_context,
    stringify_ids,
    toc_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_request_context()
    yield
    clear_request_context()


class TestStringifyIds:
    def test_uuid_values_become_strings(self):
        node_id = uuid4()
        event = stringify_ids(None, "info", {"event": "x", "node_id": node_id, "count": 3})

        assert event == {"event": "x", "node_id": str(node_id), "count": 3}

    def test_uuid_lists_become_string_lists(self):
        ids = [uuid4(), uuid4()]
        event = stringify_ids(None, "info", {"event": "x", "moved_ids": ids, "empty": []})

        assert event["moved_ids"] == [str(i) for i in ids]
        assert event["empty"] == []


class TestRequestContext:
    def test_binds_and_reads_request_id(self):
        set_request_context("req-1", path="/versions", method="GET")

        assert get_request_id() == "req-1"
        assert get_contextvars() == {"request_id": "req-1", "path": "/versions", "method": "GET"}

    def test_viewer_added_without_clobbering(self):
        """A later call with only the viewer keeps the earlier values."""
        set_request_context("req-1", path="/versions", method="GET")
        set_request_context(None, viewer_id="user-1")

        context = get_contextvars()
        assert context["request_id"] == "req-1"
        assert context["viewer_id"] == "user-1"

    def test_clear(self):
        set_request_context("req-1")
        clear_request_context()

        assert get_request_id() is None
        assert get_contextvars() == {}


class TestTocContext:
    def test_bound_only_inside_block(self):
        version_id = uuid4()

        with toc_context(version_id=version_id, node_id=None):
            assert get_contextvars() == {"version_id": str(version_id)}

        assert "version_id" not in get_contextvars()

    def test_unbound_after_exception(self):
        with pytest.raises(RuntimeError):
            with toc_context(node_id=uuid4()):
                raise RuntimeError("boom")

        assert "node_id" not in get_contextvars()
