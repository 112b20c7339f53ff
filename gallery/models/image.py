"""
SQLModel-based Image model.

ImageBase (shared public fields)
    ├─> Images (database table)
    └─> ImageRecord/ImageListItem (API schemas, defined in gallery/schemas)

An image row is created with ready=False while its upload is in flight and only
becomes visible to listings once the blob is stored and its tags are assigned.
"""

from sqlalchemy import Index
from sqlmodel import Field, SQLModel


class ImageBase(SQLModel):
    """Fields shared between the images table and API schemas."""

    slug: str = Field(primary_key=True, max_length=120)
    ext: str = Field(max_length=16)
    name: str = Field(max_length=200)

    # Unix seconds; immutable, drives newest-first ordering
    added_at: int

    # Dimensions and file info
    size_bytes: int = Field(default=0)
    width_px: int
    height_px: int

    # Base64 SHA-256 digest (43 chars + '=')
    sha256: str = Field(max_length=44)


class Images(ImageBase, table=True):
    """Database table for images."""

    __tablename__ = "images"

    __table_args__ = (
        # Serves the (added_at DESC, slug DESC) listing order and its cursor predicate
        Index("idx_images_ready_added_at_slug", "ready", "added_at", "slug"),
    )

    ready: bool = Field(default=False)
