"""Book version Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

VersionStatusValue = Literal["draft", "published"]

__all__ = [
    "VersionStatusValue",
    "CreateVersionRequest",
    "CloneVersionRequest",
    "BookVersionOut",
    "CloneVersionOut",
    "MeOut",
]


class CreateVersionRequest(BaseModel):
    """Request body for creating an empty draft version."""

    template_id: UUID | None = Field(default=None, description="Rendering template reference")


class CloneVersionRequest(BaseModel):
    """Request body for cloning a published version into a new draft.

    Either ``source_version_id`` or ``book_id`` is required. With only a
    book, the latest published version of that book is cloned.
    """

    source_version_id: UUID | None = None
    book_id: UUID | None = None

    @model_validator(mode="after")
    def require_source(self) -> "CloneVersionRequest":
        """Require at least one way of identifying the source."""
        if self.source_version_id is None and self.book_id is None:
            raise ValueError("source_version_id or book_id is required")
        return self


class BookVersionOut(BaseModel):
    """Response schema for a book version."""

    id: UUID
    book_id: UUID
    version_no: int
    status: VersionStatusValue
    template_id: UUID | None
    created_by: UUID | None
    created_at: datetime
    locked_by: UUID | None
    locked_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class CloneVersionOut(BaseModel):
    """Result of a version clone."""

    version: BookVersionOut
    source_version_id: UUID
    node_count: int
    content_count: int
    assignment_count: int


class MeOut(BaseModel):
    """The authenticated caller."""

    user_id: UUID
    system_role: Literal["user", "admin"]
    email: str | None
    display_name: str | None
