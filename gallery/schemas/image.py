"""
Pydantic schemas for Image endpoints
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field

from gallery.config import settings
from gallery.schemas.tag import ImageTagSummary, TagRecord


class ImageCursor(BaseModel):
    """Position in the (added_at DESC, slug DESC) image ordering."""

    added_at: int
    slug: str


class ImageRecord(BaseModel):
    """An image row decoded at the query boundary."""

    slug: str
    ext: str
    name: str
    added_at: int
    size_bytes: int
    width_px: int
    height_px: int
    sha256: str
    ready: bool

    @property
    def object_key(self) -> str:
        return f"{self.slug}.{self.ext}"

    @property
    def cursor(self) -> ImageCursor:
        return ImageCursor(added_at=self.added_at, slug=self.slug)


class ImageListItem(ImageRecord):
    """Image as returned by listings, with its tags and public URL."""

    tags: list[ImageTagSummary] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def url(self) -> str:
        """Public URL of the stored object"""
        return f"{settings.IMAGE_BASE_URL.rstrip('/')}/{self.object_key}"


class ImagePage(BaseModel):
    """One page of the image listing."""

    items: list[ImageListItem]
    next_cursor: ImageCursor | None = None


class ImageWithTags(BaseModel):
    """Single image with full tag records"""

    image: ImageRecord
    tags: list[TagRecord]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def url(self) -> str:
        return f"{settings.IMAGE_BASE_URL.rstrip('/')}/{self.image.object_key}"


class ImageNameUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str


class ImageUserTagsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tag_slugs: list[str]


class BulkModifyImagesTagsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    image_slugs: list[str] = Field(min_length=1)
    add_tag_slugs: list[str] = Field(default_factory=list)
    remove_tag_slugs: list[str] = Field(default_factory=list)


class BulkModifyImagesTagsResult(BaseModel):
    """
    Outcome of a bulk add/remove.

    inserted_count and removed_count only count rows that changed state, so they
    can be lower than (tags requested x images).
    """

    image_count: int
    add_tag_count: int
    remove_tag_count: int
    inserted_count: int
    removed_count: int


class ImageUploadResponse(BaseModel):
    """Response after successful image upload"""

    message: str
    slug: str
    url: str
    tag_slugs: list[str]
    system_tag_slugs: list[str]
