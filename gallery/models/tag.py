"""
SQLModel-based Tag model.

A tag's slug is ``{kind_slug}/{value}``; kind_slug is stored redundantly so
listings can group and count by kind without parsing slugs in SQL.
"""

from sqlalchemy import ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel


class Tags(SQLModel, table=True):
    """
    Database table for tags.

    system tags are owned by the rule engine: only reconciliation and uploads
    associate them with images, and they cannot be renamed or deleted.
    """

    __tablename__ = "tags"

    # Deleting a kind that still has tags is refused by the tag service; the
    # RESTRICT here backs that up at the schema level.
    __table_args__ = (
        ForeignKeyConstraint(
            ["kind_slug"],
            ["tag_kinds.slug"],
            ondelete="RESTRICT",
            onupdate="CASCADE",
            name="fk_tags_kind_slug",
        ),
        Index("idx_tags_kind_slug_name", "kind_slug", "name"),
    )

    slug: str = Field(primary_key=True, max_length=130)
    name: str = Field(max_length=100)
    kind_slug: str = Field(max_length=64)
    system: bool = Field(default=False)
