"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from folio.schemas.content import (
    AssigneeOut,
    AssignmentOut,
    BookMemberOut,
    CreateAssignmentRequest,
    RequestChangeRequest,
    SaveContentRequest,
    TocContentOut,
)
from folio.schemas.toc import (
    CreateTocNodeRequest,
    MoveToSectionOut,
    MoveToSectionRequest,
    PatchTocNodeRequest,
    ReorderTocOut,
    ReorderTocRequest,
    TocNodeDetailOut,
    TocNodeOut,
    TocSubtreeNodeOut,
    TocTreeOut,
)
from folio.schemas.version import (
    BookVersionOut,
    CloneVersionOut,
    CloneVersionRequest,
    CreateVersionRequest,
    MeOut,
)

__all__ = [
    # Content / assignments
    "AssigneeOut",
    "AssignmentOut",
    "BookMemberOut",
    "CreateAssignmentRequest",
    "RequestChangeRequest",
    "SaveContentRequest",
    "TocContentOut",
    # TOC
    "CreateTocNodeRequest",
    "MoveToSectionOut",
    "MoveToSectionRequest",
    "PatchTocNodeRequest",
    "ReorderTocOut",
    "ReorderTocRequest",
    "TocNodeDetailOut",
    "TocNodeOut",
    "TocSubtreeNodeOut",
    "TocTreeOut",
    # Versions
    "BookVersionOut",
    "CloneVersionOut",
    "CloneVersionRequest",
    "CreateVersionRequest",
    "MeOut",
]
