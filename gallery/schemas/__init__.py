"""
Pydantic schemas for records returned by the services and for API payloads.
"""

from gallery.schemas.image import (
    BulkModifyImagesTagsRequest,
    BulkModifyImagesTagsResult,
    ImageCursor,
    ImageListItem,
    ImageNameUpdate,
    ImagePage,
    ImageRecord,
    ImageUploadResponse,
    ImageUserTagsUpdate,
    ImageWithTags,
)
from gallery.schemas.tag import (
    AssignableTag,
    ImageTagSummary,
    ReapplySystemTagsResponse,
    TagCreate,
    TagDefinitionRecord,
    TagKindCreate,
    TagKindRecord,
    TagKindTree,
    TagKindUpdate,
    TagRecord,
    TagUpdate,
)

__all__ = [
    "AssignableTag",
    "BulkModifyImagesTagsRequest",
    "BulkModifyImagesTagsResult",
    "ImageCursor",
    "ImageListItem",
    "ImageNameUpdate",
    "ImagePage",
    "ImageRecord",
    "ImageTagSummary",
    "ImageUploadResponse",
    "ImageUserTagsUpdate",
    "ImageWithTags",
    "ReapplySystemTagsResponse",
    "TagCreate",
    "TagDefinitionRecord",
    "TagKindCreate",
    "TagKindRecord",
    "TagKindTree",
    "TagKindUpdate",
    "TagRecord",
    "TagUpdate",
]
