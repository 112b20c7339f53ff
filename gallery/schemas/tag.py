"""
Pydantic schemas for tags and tag kinds
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TagKindRecord(BaseModel):
    """A tag kind as stored."""

    slug: str
    name: str
    system_only: bool = False


class TagDefinitionRecord(BaseModel):
    """A tag definition as stored, without usage data."""

    slug: str
    name: str
    kind_slug: str
    system: bool = False


class TagRecord(TagDefinitionRecord):
    """A tag annotated with its image count under the active filter."""

    image_count: int = 0
    selected: bool = False


class TagKindTree(BaseModel):
    """A tag kind with its tags, as shown in the filter sidebar."""

    slug: str
    name: str
    system_only: bool = False
    image_count: int = 0
    has_selected: bool = False
    tags: list[TagRecord] = Field(default_factory=list)


class ImageTagSummary(BaseModel):
    """Minimal tag info for embedding in image responses"""

    slug: str
    name: str
    kind_slug: str
    system: bool = False


# Management requests
#
# extra="forbid" rejects attempts to smuggle system_only / system / kind_slug
# through the management API.


class TagKindCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    slug: str
    name: str


class TagKindUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str


class TagCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    slug: str
    name: str

    @field_validator("slug", "name")
    @classmethod
    def strip_fields(cls, v: str) -> str:
        return v.strip()


class TagUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str


class AssignableTag(BaseModel):
    slug: str
    name: str


class ReapplySystemTagsResponse(BaseModel):
    """Summary of a system tag reconciliation run"""

    image_count: int
    removed_count: int
    inserted_count: int
