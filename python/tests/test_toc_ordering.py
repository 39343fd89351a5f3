"""Tests for the reorder/move engine.

Tests cover:
- reorder_container writes 1..N in the requested order
- Reorders are idempotent
- Subset reorders permute within the occupied slots
- move_node appends to the destination and renormalizes both containers
- Conflicting reorders and duplicate order_index values always settle into
  a gap-free 1..N permutation
"""

import pytest
from sqlalchemy import update
from sqlalchemy.orm import Session

from folio.db.models import TocNode
from folio.errors import InvalidBatchError, InvalidStructureError, UnsupportedOperationError
from folio.services import toc_ordering
from tests.factories import (
    container_order,
    container_titles,
    create_book_with_members,
    create_node,
    get_node_row,
)


@pytest.fixture
def version_id(db_session: Session):
    return create_book_with_members(db_session).version_id


def _chapters(db_session: Session, version_id, titles, parent_id=None):
    return {t: create_node(db_session, version_id, t, parent_id=parent_id) for t in titles}


class TestReorderContainer:
    """Tests for reorder_container."""

    def test_full_reorder(self, db_session: Session, version_id):
        ids = _chapters(db_session, version_id, ["A", "B", "C"])

        toc_ordering.reorder_container(db_session, version_id, None, [ids["C"], ids["A"], ids["B"]])
        db_session.commit()

        assert container_order(db_session, version_id, None) == [("C", 1), ("A", 2), ("B", 3)]

    def test_reorder_is_idempotent(self, db_session: Session, version_id):
        """Applying the same order twice changes nothing the second time."""
        ids = _chapters(db_session, version_id, ["A", "B", "C"])
        order = [ids["B"], ids["C"], ids["A"]]

        toc_ordering.reorder_container(db_session, version_id, None, order)
        db_session.commit()
        first = container_order(db_session, version_id, None)
        toc_ordering.reorder_container(db_session, version_id, None, order)
        db_session.commit()

        assert container_order(db_session, version_id, None) == first

    def test_reorder_heals_gaps(self, db_session: Session, version_id):
        a = create_node(db_session, version_id, "A", order_index=5)
        b = create_node(db_session, version_id, "B", order_index=9)

        toc_ordering.reorder_container(db_session, version_id, None, [a, b])
        db_session.commit()

        assert container_order(db_session, version_id, None) == [("A", 1), ("B", 2)]

    def test_subset_reorder_keeps_other_kinds_in_place(self, db_session: Session, version_id):
        """Reordering only the sections of a mixed root leaves chapters' slots alone."""
        s1 = create_node(db_session, version_id, "S1", kind="section")
        create_node(db_session, version_id, "C1")
        s2 = create_node(db_session, version_id, "S2", kind="section")

        toc_ordering.reorder_container(db_session, version_id, None, [s2, s1])
        db_session.commit()

        assert container_order(db_session, version_id, None) == [("S2", 1), ("C1", 2), ("S1", 3)]

    def test_reorder_inside_section(self, db_session: Session, version_id):
        section = create_node(db_session, version_id, "Part", kind="section")
        ids = _chapters(db_session, version_id, ["A", "B"], parent_id=section)

        nodes = toc_ordering.reorder_container(
            db_session, version_id, section, [ids["B"], ids["A"]]
        )

        assert [n.title for n in nodes] == ["B", "A"]

    def test_invalid_batch_writes_nothing(self, db_session: Session, version_id):
        """A heading in a chapter batch is rejected by name and nothing moves."""
        p = create_node(db_session, version_id, "Part", kind="section")
        a = create_node(db_session, version_id, "A", parent_id=p)
        b = create_node(db_session, version_id, "B", parent_id=p)
        c = create_node(db_session, version_id, "C", kind="heading", parent_id=p)

        with pytest.raises(InvalidBatchError) as exc_info:
            toc_ordering.reorder_container(db_session, version_id, p, [a, b, c])
        db_session.rollback()

        assert c in exc_info.value.offending_ids
        assert a not in exc_info.value.offending_ids
        assert container_titles(db_session, version_id, p) == ["A", "B", "C"]


class TestConflictingReorders:
    """Conflicting reorders on one container always leave a valid permutation."""

    def test_last_writer_wins_with_valid_sequence(self, db_session: Session, version_id):
        ids = _chapters(db_session, version_id, ["A", "B", "C", "D"])

        toc_ordering.reorder_container(
            db_session, version_id, None, [ids["D"], ids["C"], ids["B"], ids["A"]]
        )
        toc_ordering.reorder_container(
            db_session, version_id, None, [ids["B"], ids["A"], ids["D"], ids["C"]]
        )
        db_session.commit()

        order = container_order(db_session, version_id, None)
        assert [title for title, _ in order] == ["B", "A", "D", "C"]
        assert [index for _, index in order] == [1, 2, 3, 4]

    def test_reorder_after_interleaved_writes(self, db_session: Session, version_id):
        """Duplicate indexes left by a lost race are resolved by the next reorder."""
        ids = _chapters(db_session, version_id, ["A", "B", "C"])
        db_session.execute(
            update(TocNode)
            .where(TocNode.id.in_([ids["A"], ids["C"]]))
            .values(order_index=2)
        )
        db_session.commit()

        toc_ordering.reorder_container(db_session, version_id, None, [ids["C"], ids["B"], ids["A"]])
        db_session.commit()

        assert container_order(db_session, version_id, None) == [("C", 1), ("B", 2), ("A", 3)]


class TestMoveNode:
    """Tests for move_node."""

    def test_move_chapter_into_section_appends(self, db_session: Session, version_id):
        section = create_node(db_session, version_id, "Part", kind="section")
        create_node(db_session, version_id, "Existing", parent_id=section)
        c1 = create_node(db_session, version_id, "C1")
        create_node(db_session, version_id, "C2")

        moved = toc_ordering.move_node(db_session, get_node_row(db_session, c1), section)
        db_session.commit()

        assert moved.parent_id == section
        assert container_order(db_session, version_id, section) == [("Existing", 1), ("C1", 2)]
        assert container_order(db_session, version_id, None) == [("Part", 1), ("C2", 2)]

    def test_move_chapter_out_to_root(self, db_session: Session, version_id):
        section = create_node(db_session, version_id, "Part", kind="section")
        inner = create_node(db_session, version_id, "Inner", parent_id=section)
        create_node(db_session, version_id, "Sibling", parent_id=section)

        toc_ordering.move_node(db_session, get_node_row(db_session, inner), None)
        db_session.commit()

        assert container_order(db_session, version_id, None) == [("Part", 1), ("Inner", 2)]
        assert container_order(db_session, version_id, section) == [("Sibling", 1)]

    def test_move_to_same_parent_is_noop(self, db_session: Session, version_id):
        c1 = create_node(db_session, version_id, "C1")

        node = toc_ordering.move_node(db_session, get_node_row(db_session, c1), None)

        assert node.order_index == 1

    def test_heading_move_rejected(self, db_session: Session, version_id):
        ch1 = create_node(db_session, version_id, "Ch1")
        ch2 = create_node(db_session, version_id, "Ch2")
        h = create_node(db_session, version_id, "H", kind="heading", parent_id=ch1)

        with pytest.raises(UnsupportedOperationError):
            toc_ordering.move_node(db_session, get_node_row(db_session, h), ch2)

    def test_chapter_under_chapter_rejected(self, db_session: Session, version_id):
        ch1 = create_node(db_session, version_id, "Ch1")
        ch2 = create_node(db_session, version_id, "Ch2")

        with pytest.raises(InvalidStructureError):
            toc_ordering.move_node(db_session, get_node_row(db_session, ch2), ch1)
