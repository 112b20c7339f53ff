"""
SQLModel-based TagKind model.

A tag kind is the namespace half of a ``kind/value`` tag slug. Kinds marked
system_only hold nothing but rule-engine tags; the flag is set when the kind is
seeded and is never changed through the management API.
"""

from sqlmodel import Field, SQLModel


class TagKinds(SQLModel, table=True):
    """Database table for tag kinds."""

    __tablename__ = "tag_kinds"

    slug: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=100)
    system_only: bool = Field(default=False)
