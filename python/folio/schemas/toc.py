"""TOC-related Pydantic schemas.

Contains request and response models for table-of-contents endpoints.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from folio.schemas.content import AssignmentOut, TocContentOut

TocKindValue = Literal["section", "chapter", "heading"]
BookRoleValue = Literal["viewer", "author", "editor"]

__all__ = [
    "TocKindValue",
    "BookRoleValue",
    "CreateTocNodeRequest",
    "PatchTocNodeRequest",
    "ReorderTocRequest",
    "MoveToSectionRequest",
    "TocNodeOut",
    "TocTreeOut",
    "TocSubtreeNodeOut",
    "TocNodeDetailOut",
    "ReorderTocOut",
    "MoveToSectionOut",
]

# =============================================================================
# Request Schemas
# =============================================================================


class CreateTocNodeRequest(BaseModel):
    """Request body for creating a TOC node."""

    title: str = Field(..., min_length=1, max_length=512, description="Node title (1-512 chars)")
    kind: TocKindValue = Field(default="chapter", description="Node kind")
    parent_id: UUID | None = Field(default=None, description="Parent node ID (null for root)")


class PatchTocNodeRequest(BaseModel):
    """Request body for patching a TOC node.

    ``parent_id`` is only applied when present in the body; an explicit
    ``null`` moves the node to the root container.
    """

    title: str | None = Field(default=None, min_length=1, max_length=512)
    parent_id: UUID | None = Field(default=None)

    @model_validator(mode="after")
    def require_some_field(self) -> "PatchTocNodeRequest":
        """Reject bodies that change nothing."""
        if not self.model_fields_set & {"title", "parent_id"}:
            raise ValueError("Provide title and/or parent_id")
        if "title" in self.model_fields_set and self.title is None:
            raise ValueError("title cannot be null")
        return self

    @property
    def parent_id_set(self) -> bool:
        """Whether the body carried a parent_id key (including null)."""
        return "parent_id" in self.model_fields_set


class ReorderTocRequest(BaseModel):
    """Request body for reordering one container's children."""

    parent_id: UUID | None = Field(default=None, description="Container node ID (null for root)")
    ordered_ids: list[UUID] = Field(..., min_length=1, description="Node IDs in their new order")


class MoveToSectionRequest(BaseModel):
    """Request body for moving root chapters into a section."""

    section_id: UUID = Field(..., description="Destination section node ID")
    chapter_ids: list[UUID] = Field(..., min_length=1, description="Root chapter IDs to move")
    caller_order: list[UUID] | None = Field(
        default=None, description="Optional explicit order; defaults to chapter_ids order"
    )


# =============================================================================
# Response Schemas
# =============================================================================


class TocNodeOut(BaseModel):
    """Response schema for a TOC node."""

    id: UUID
    book_version_id: UUID
    parent_id: UUID | None
    title: str
    slug: str
    kind: TocKindValue
    order_index: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TocTreeOut(BaseModel):
    """Flat, ordered node list of one version plus the viewer's role."""

    version_id: UUID
    book_id: UUID
    role: BookRoleValue
    nodes: list[TocNodeOut]


class TocSubtreeNodeOut(BaseModel):
    """A node with its nested children; depth is 0 at the requested root."""

    id: UUID
    parent_id: UUID | None
    title: str
    slug: str
    kind: TocKindValue
    order_index: int
    depth: int
    children: list["TocSubtreeNodeOut"] = Field(default_factory=list)


class TocNodeDetailOut(BaseModel):
    """A node with its content, assignments and the viewer's permissions.

    ``version_template_id`` is the rendering template of the owning version.
    """

    node: TocNodeOut
    content: TocContentOut | None
    assignments: list[AssignmentOut]
    role: BookRoleValue
    can_edit_content: bool
    version_template_id: UUID | None


class ReorderTocOut(BaseModel):
    """Container contents after a reorder."""

    version_id: UUID
    parent_id: UUID | None
    nodes: list[TocNodeOut]


class MoveToSectionOut(BaseModel):
    """Result of a bulk move of root chapters into a section."""

    version_id: UUID
    section_id: UUID
    moved_count: int
    moved_ids: list[UUID]
    missing_ids: list[UUID]
    skipped_ids: list[UUID]
