"""Tests for version listing, creation and publishing."""

from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from folio.errors import ApiError, ApiErrorCode
from folio.services import versions as versions_service
from tests.factories import create_book_with_members, create_version


@pytest.fixture
def setup(db_session: Session):
    return create_book_with_members(db_session)


class TestVersions:
    def test_create_version_numbers_sequentially(self, db_session: Session, setup):
        template_id = uuid4()

        created = versions_service.create_version(
            db_session, setup.editor_id, setup.book_id, template_id=template_id
        )

        assert created.version_no == 2
        assert created.status == "draft"
        assert created.template_id == template_id

    def test_list_versions_newest_first(self, db_session: Session, setup):
        create_version(db_session, setup.book_id)

        listed = versions_service.list_versions(db_session, setup.viewer_id, setup.book_id)

        assert [v.version_no for v in listed] == [2, 1]

    def test_author_cannot_create_version(self, db_session: Session, setup):
        with pytest.raises(ApiError) as exc_info:
            versions_service.create_version(db_session, setup.author_id, setup.book_id)

        assert exc_info.value.code == ApiErrorCode.E_FORBIDDEN

    def test_unknown_book(self, db_session: Session, setup):
        with pytest.raises(ApiError) as exc_info:
            versions_service.list_versions(db_session, setup.editor_id, uuid4())

        assert exc_info.value.code == ApiErrorCode.E_BOOK_NOT_FOUND


class TestPublish:
    def test_admin_publishes(self, db_session: Session, setup):
        result = versions_service.publish_version(db_session, setup.admin_id, setup.version_id)

        assert result.status == "published"
        assert result.locked_by == setup.admin_id
        assert result.locked_at is not None

    def test_editor_cannot_publish(self, db_session: Session, setup):
        with pytest.raises(ApiError) as exc_info:
            versions_service.publish_version(db_session, setup.editor_id, setup.version_id)

        assert exc_info.value.code == ApiErrorCode.E_FORBIDDEN

    def test_publish_twice_conflicts(self, db_session: Session, setup):
        versions_service.publish_version(db_session, setup.admin_id, setup.version_id)

        with pytest.raises(ApiError) as exc_info:
            versions_service.publish_version(db_session, setup.admin_id, setup.version_id)

        assert exc_info.value.code == ApiErrorCode.E_VERSION_LOCKED

    def test_publish_unknown_version(self, db_session: Session, setup):
        with pytest.raises(ApiError) as exc_info:
            versions_service.publish_version(db_session, setup.admin_id, uuid4())

        assert exc_info.value.code == ApiErrorCode.E_VERSION_NOT_FOUND
