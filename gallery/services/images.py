"""Image row operations."""

from sqlalchemy import delete, select

from gallery.core.database import DbSession
from gallery.core.errors import AlreadyExists, ImageNotFound
from gallery.core.logging import get_logger
from gallery.core.validators import validate_image_name, validate_image_slug
from gallery.models import Images, ImageTags, Tags
from gallery.schemas.image import ImageRecord, ImageWithTags
from gallery.services.rows import image_record_from_row, tag_record_from_row

logger = get_logger(__name__)


async def insert_image(session: DbSession, image: ImageRecord) -> ImageRecord:
    """Insert a new image row. Uploads insert with ready=False."""
    session.require_write("insert image")
    if await session.get(Images, image.slug) is not None:
        raise AlreadyExists("Image", image.slug)

    row = Images(**image.model_dump())
    await session.insert_new(row, "Image", image.slug)
    return image_record_from_row(row)


async def get_image_row(
    session: DbSession, slug: str, include_not_ready: bool = False
) -> Images:
    image = await session.get(Images, validate_image_slug(slug))
    if image is None or (not image.ready and not include_not_ready):
        raise ImageNotFound(slug)
    return image


async def get_image_by_slug(
    session: DbSession, slug: str, include_not_ready: bool = False
) -> ImageWithTags:
    """Load an image with its tags ordered by (kind, slug)."""
    image = await get_image_row(session, slug, include_not_ready)

    tags = await session.scalars(
        select(Tags)
        .join(ImageTags, ImageTags.tag_slug == Tags.slug)  # type: ignore[arg-type]
        .where(ImageTags.image_slug == image.slug)  # type: ignore[arg-type]
        .order_by(Tags.kind_slug, Tags.slug)
    )
    return ImageWithTags(
        image=image_record_from_row(image),
        tags=[tag_record_from_row(tag) for tag in tags],
    )


async def mark_image_ready(session: DbSession, slug: str) -> None:
    session.require_write("mark image ready")
    image = await get_image_row(session, slug, include_not_ready=True)
    image.ready = True
    await session.flush()


async def update_image_name(session: DbSession, slug: str, name: str) -> ImageRecord:
    session.require_write("update image name")
    name = validate_image_name(name)
    image = await get_image_row(session, slug)
    image.name = name
    await session.flush()
    return image_record_from_row(image)


async def delete_image(
    session: DbSession, slug: str, include_not_ready: bool = True
) -> ImageRecord:
    """
    Delete an image row and, through ON DELETE CASCADE, its tag associations.

    Returns the deleted record so the caller can remove the stored object.
    """
    session.require_write("delete image")
    image = await get_image_row(session, slug, include_not_ready)
    record = image_record_from_row(image)

    await session.execute(delete(Images).where(Images.slug == image.slug))  # type: ignore[arg-type]
    logger.info("image_deleted", slug=image.slug)
    return record
