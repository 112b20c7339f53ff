"""
Image-tag associations.

System-tag associations belong to the rule engine: only set_image_tags (used by
uploads) and reconciliation write them. User-facing operations touch non-system
associations only.
"""

from collections.abc import Iterable

from sqlalchemy import delete, func, insert, select

from gallery.core.database import DbSession
from gallery.core.errors import MissingSystemTagDefinition, ValidationError
from gallery.core.logging import get_logger
from gallery.core.validators import validate_image_slug, validate_tag_slug
from gallery.models import Images, ImageTags, Tags
from gallery.schemas.image import BulkModifyImagesTagsResult
from gallery.schemas.tag import ReapplySystemTagsResponse
from gallery.services.images import get_image_row
from gallery.services.system_tags import ImageProperties, resolve_system_tags
from gallery.services.tags import get_user_tags

logger = get_logger(__name__)


def normalize_tag_slugs(tag_slugs: Iterable[str]) -> list[str]:
    """Validate and lowercase tag slugs, dropping duplicates but keeping order."""
    return list(dict.fromkeys(validate_tag_slug(slug) for slug in tag_slugs))


async def _insert_links(session: DbSession, pairs: Iterable[tuple[str, str]]) -> int:
    rows = [{"image_slug": image_slug, "tag_slug": tag_slug} for image_slug, tag_slug in pairs]
    if rows:
        await session.execute(insert(ImageTags), rows)
    return len(rows)


def _system_tag_slugs():
    return select(Tags.slug).where(Tags.system == True)  # noqa: E712


async def set_image_tags(session: DbSession, image_slug: str, tag_slugs: Iterable[str]) -> None:
    """
    Replace every association of an image with the given tags.

    Trusted internal call: tag existence is not checked here.
    """
    session.require_write("set image tags")
    image_slug = validate_image_slug(image_slug)
    slugs = normalize_tag_slugs(tag_slugs)

    await session.execute(delete(ImageTags).where(ImageTags.image_slug == image_slug))  # type: ignore[arg-type]
    await _insert_links(session, ((image_slug, slug) for slug in slugs))


async def set_image_user_tags(
    session: DbSession, image_slug: str, tag_slugs: Iterable[str]
) -> list[str]:
    """
    Replace an image's non-system tags. System-tag associations are untouched.

    Fails with ImageNotFound, TagNotFound or SystemTagNotEditable before
    anything is written. Returns the normalized tag slugs now assigned.
    """
    session.require_write("set image user tags")
    image = await get_image_row(session, image_slug)
    slugs = normalize_tag_slugs(tag_slugs)
    await get_user_tags(session, slugs)

    await session.execute(
        delete(ImageTags).where(
            ImageTags.image_slug == image.slug,  # type: ignore[arg-type]
            ImageTags.tag_slug.not_in(_system_tag_slugs()),  # type: ignore[attr-defined]
        )
    )
    await _insert_links(session, ((image.slug, slug) for slug in slugs))

    logger.info("image_user_tags_set", slug=image.slug, tag_slugs=slugs)
    return slugs


async def bulk_modify_images_tags(
    session: DbSession,
    image_slugs: Iterable[str],
    add_tag_slugs: Iterable[str],
    remove_tag_slugs: Iterable[str],
) -> BulkModifyImagesTagsResult:
    """
    Add and remove user tags across many images in one transaction.

    Every tag is validated up front; one unknown or system tag rejects the
    whole batch. Image slugs that do not exist are skipped. Adds that already
    exist and removes that do not exist are not counted as changes.
    """
    session.require_write("bulk modify image tags")
    requested_images = list(dict.fromkeys(validate_image_slug(s) for s in image_slugs))
    to_add = normalize_tag_slugs(add_tag_slugs)
    to_remove = normalize_tag_slugs(remove_tag_slugs)

    overlap = sorted(set(to_add) & set(to_remove))
    if overlap:
        raise ValidationError(f"Tags cannot be both added and removed: {', '.join(overlap)}")

    await get_user_tags(session, to_add + to_remove)

    existing_images: list[str] = []
    if requested_images:
        found = set(
            await session.scalars(
                select(Images.slug).where(Images.slug.in_(requested_images))  # type: ignore[attr-defined]
            )
        )
        existing_images = [slug for slug in requested_images if slug in found]

    inserted_count = 0
    removed_count = 0
    touched_tags = to_add + to_remove
    if existing_images and touched_tags:
        links_result = await session.execute(
            select(ImageTags.image_slug, ImageTags.tag_slug).where(
                ImageTags.image_slug.in_(existing_images),  # type: ignore[attr-defined]
                ImageTags.tag_slug.in_(touched_tags),  # type: ignore[attr-defined]
            )
        )
        existing_links = {(row[0], row[1]) for row in links_result.all()}

        missing = [
            (image_slug, tag_slug)
            for image_slug in existing_images
            for tag_slug in to_add
            if (image_slug, tag_slug) not in existing_links
        ]
        inserted_count = await _insert_links(session, missing)

        if to_remove:
            removed_count = sum(1 for _, tag_slug in existing_links if tag_slug in to_remove)
            await session.execute(
                delete(ImageTags).where(
                    ImageTags.image_slug.in_(existing_images),  # type: ignore[attr-defined]
                    ImageTags.tag_slug.in_(to_remove),  # type: ignore[attr-defined]
                )
            )

    logger.info(
        "images_tags_bulk_modified",
        image_count=len(existing_images),
        skipped_image_count=len(requested_images) - len(existing_images),
        inserted_count=inserted_count,
        removed_count=removed_count,
    )
    return BulkModifyImagesTagsResult(
        image_count=len(existing_images),
        add_tag_count=len(to_add),
        remove_tag_count=len(to_remove),
        inserted_count=inserted_count,
        removed_count=removed_count,
    )


async def reapply_system_tags_for_all_images(session: DbSession) -> ReapplySystemTagsResponse:
    """
    Recompute every image's system tags from its stored dimensions.

    All images are resolved and checked against the system tag definitions
    before anything is deleted; a rule emitting an undefined tag aborts the run
    with MissingSystemTagDefinition. Running it twice yields the same
    associations. Non-system associations are never touched.
    """
    session.require_write("reapply system tags")

    defined = set(await session.scalars(_system_tag_slugs()))
    result = await session.execute(
        select(Images.slug, Images.width_px, Images.height_px, Images.size_bytes).order_by(
            Images.slug
        )
    )

    desired: list[tuple[str, str]] = []
    image_count = 0
    for slug, width_px, height_px, size_bytes in result.all():
        image_count += 1
        properties = ImageProperties(width_px=width_px, height_px=height_px, size_bytes=size_bytes)
        for tag_slug in resolve_system_tags(properties):
            if tag_slug not in defined:
                logger.error("system_tag_definition_missing", tag_slug=tag_slug, slug=slug)
                raise MissingSystemTagDefinition(tag_slug)
            desired.append((slug, tag_slug))

    system_links = ImageTags.tag_slug.in_(_system_tag_slugs())  # type: ignore[attr-defined]
    removed_count = await session.scalar(
        select(func.count()).select_from(ImageTags).where(system_links)
    )
    await session.execute(delete(ImageTags).where(system_links))
    inserted_count = await _insert_links(session, desired)

    logger.info(
        "system_tags_reapplied",
        image_count=image_count,
        removed_count=removed_count,
        inserted_count=inserted_count,
    )
    return ReapplySystemTagsResponse(
        image_count=image_count,
        removed_count=removed_count,
        inserted_count=inserted_count,
    )
