"""
SQLModel-based ImageTags junction table.

A row exists iff the image currently carries the tag. Rows are removed together
with either side (ON DELETE CASCADE).
"""

from sqlalchemy import ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel


class ImageTags(SQLModel, table=True):
    """Database table for image-tag associations."""

    __tablename__ = "image_tags"

    __table_args__ = (
        ForeignKeyConstraint(
            ["image_slug"],
            ["images.slug"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_image_tags_image_slug",
        ),
        ForeignKeyConstraint(
            ["tag_slug"],
            ["tags.slug"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_image_tags_tag_slug",
        ),
        Index("idx_image_tags_tag_slug", "tag_slug"),
    )

    image_slug: str = Field(primary_key=True, max_length=120)
    tag_slug: str = Field(primary_key=True, max_length=130)
