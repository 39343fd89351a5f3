"""Content workflow and assignment Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ContentStatusValue = Literal["draft", "submitted", "needs_revision", "approved"]
ItemRoleValue = Literal["author", "editor"]

__all__ = [
    "ContentStatusValue",
    "ItemRoleValue",
    "SaveContentRequest",
    "RequestChangeRequest",
    "CreateAssignmentRequest",
    "TocContentOut",
    "AssigneeOut",
    "AssignmentOut",
    "BookMemberOut",
]


class SaveContentRequest(BaseModel):
    """Request body for saving a node's content document."""

    content_json: dict[str, Any] | list[Any] = Field(..., description="Rich-text document")


class RequestChangeRequest(BaseModel):
    """Request body for sending content back to its author."""

    note: str | None = Field(default=None, max_length=4000, description="Editor note")


class CreateAssignmentRequest(BaseModel):
    """Request body for assigning a user to a node."""

    user_id: UUID
    role_in_item: ItemRoleValue = "author"


class TocContentOut(BaseModel):
    """Response schema for a node's content."""

    toc_item_id: UUID
    content_json: Any
    status: ContentStatusValue
    editor_note: str | None
    author_resolved: bool
    updated_by: UUID | None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssigneeOut(BaseModel):
    """Profile of an assigned user."""

    id: UUID
    email: str | None
    display_name: str | None

    model_config = ConfigDict(from_attributes=True)


class AssignmentOut(BaseModel):
    """Response schema for a node assignment with the assignee's profile."""

    toc_item_id: UUID
    user_id: UUID
    role_in_item: ItemRoleValue
    created_at: datetime
    user: AssigneeOut

    model_config = ConfigDict(from_attributes=True)


class BookMemberOut(BaseModel):
    """Response schema for a book member."""

    user_id: UUID
    role: Literal["viewer", "author", "editor"]
    email: str | None
    display_name: str | None
