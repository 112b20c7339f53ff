"""
Tag-filtered image listing and tag count aggregation.

Grouped tag filters map a kind slug to a set of tag values within that kind.
An image matches when, for every group, it carries at least one of the group's
tags (OR within a group, AND across groups). The query restricts associations
to the flattened filter set and keeps images whose tags touch as many distinct
kinds as there are groups.

Listings use the total order (added_at DESC, slug DESC) so cursor pagination
never repeats or skips a row when many images share added_at.
"""

from collections.abc import Iterable, Mapping

from sqlalchemy import and_, distinct, func, or_, select
from sqlalchemy.sql import ColumnElement, Select

from gallery.config import settings
from gallery.core.database import DbSession
from gallery.core.validators import (
    split_tag_slug,
    validate_image_slug,
    validate_page_limit,
    validate_tag_kind_slug,
    validate_tag_slug,
    validate_unix_seconds,
)
from gallery.models import Images, ImageTags, TagKinds, Tags
from gallery.schemas.image import ImageCursor, ImagePage
from gallery.schemas.tag import ImageTagSummary, TagKindTree
from gallery.services.rows import (
    image_list_item_from_row,
    tag_kind_record_from_row,
    tag_record_from_row,
    tag_summary_from_row,
)

GroupedTagFilter = Mapping[str, Iterable[str]]


def normalize_grouped_filter(grouped: GroupedTagFilter | None) -> dict[str, list[str]]:
    """Validate a grouped filter. Empty groups are dropped; values are de-duplicated."""
    normalized: dict[str, list[str]] = {}
    for kind_slug, values in (grouped or {}).items():
        kind_slug = validate_tag_kind_slug(kind_slug)
        slugs = [validate_tag_slug(f"{kind_slug}/{value}") for value in values]
        group = list(dict.fromkeys(split_tag_slug(slug)[1] for slug in slugs))
        if group:
            normalized.setdefault(kind_slug, [])
            normalized[kind_slug].extend(v for v in group if v not in normalized[kind_slug])
    return normalized


def group_tag_slugs(tag_slugs: Iterable[str]) -> dict[str, list[str]]:
    """Regroup flat ``kind/value`` slugs into a grouped filter."""
    grouped: dict[str, list[str]] = {}
    for slug in tag_slugs:
        kind_slug, value = split_tag_slug(slug)
        values = grouped.setdefault(kind_slug, [])
        if value not in values:
            values.append(value)
    return grouped


def flatten_grouped_filter(grouped: Mapping[str, list[str]]) -> list[str]:
    return [f"{kind_slug}/{value}" for kind_slug, values in grouped.items() for value in values]


def filtered_image_slugs(
    grouped: Mapping[str, list[str]], include_not_ready: bool = False
) -> Select:
    """Select the slugs of all images matching a normalized grouped filter."""
    statement = select(Images.slug)
    if not include_not_ready:
        statement = statement.where(Images.ready == True)  # noqa: E712

    if grouped:
        matching = (
            select(ImageTags.image_slug)
            .join(Tags, Tags.slug == ImageTags.tag_slug)  # type: ignore[arg-type]
            .where(ImageTags.tag_slug.in_(flatten_grouped_filter(grouped)))  # type: ignore[attr-defined]
            .group_by(ImageTags.image_slug)
            .having(func.count(distinct(Tags.kind_slug)) == len(grouped))
        )
        statement = statement.where(Images.slug.in_(matching))  # type: ignore[attr-defined]

    return statement


def _before_cursor(cursor: ImageCursor) -> ColumnElement[bool]:
    return or_(
        Images.added_at < cursor.added_at,  # type: ignore[arg-type]
        and_(
            Images.added_at == cursor.added_at,  # type: ignore[arg-type]
            Images.slug < cursor.slug,  # type: ignore[arg-type]
        ),
    )


async def _tags_for_images(
    session: DbSession, image_slugs: list[str]
) -> dict[str, list[ImageTagSummary]]:
    tags_by_image: dict[str, list[ImageTagSummary]] = {slug: [] for slug in image_slugs}
    if not image_slugs:
        return tags_by_image

    result = await session.execute(
        select(ImageTags.image_slug, Tags)
        .join(Tags, Tags.slug == ImageTags.tag_slug)  # type: ignore[arg-type]
        .where(ImageTags.image_slug.in_(image_slugs))  # type: ignore[attr-defined]
        .order_by(Tags.kind_slug, Tags.slug)
    )
    for image_slug, tag in result.all():
        tags_by_image[image_slug].append(tag_summary_from_row(tag))
    return tags_by_image


async def list_images_page(
    session: DbSession,
    cursor: ImageCursor | None = None,
    limit: int | None = None,
    grouped_filter: GroupedTagFilter | None = None,
    include_not_ready: bool = False,
) -> ImagePage:
    """
    Return up to ``limit`` images strictly after ``cursor`` in newest-first order.

    next_cursor is the last returned row's position when more rows follow,
    otherwise None.
    """
    limit = validate_page_limit(settings.DEFAULT_PAGE_LIMIT if limit is None else limit)
    grouped = normalize_grouped_filter(grouped_filter)

    statement = select(Images).where(
        Images.slug.in_(filtered_image_slugs(grouped, include_not_ready))  # type: ignore[attr-defined]
    )
    if cursor is not None:
        cursor = ImageCursor(
            added_at=validate_unix_seconds(cursor.added_at),
            slug=validate_image_slug(cursor.slug),
        )
        statement = statement.where(_before_cursor(cursor))

    # One extra row tells us whether another page exists
    statement = statement.order_by(
        Images.added_at.desc(),  # type: ignore[attr-defined]
        Images.slug.desc(),  # type: ignore[attr-defined]
    ).limit(limit + 1)

    rows = await session.scalars(statement)
    has_more = len(rows) > limit
    rows = rows[:limit]

    tags_by_image = await _tags_for_images(session, [image.slug for image in rows])
    items = [image_list_item_from_row(image, tags_by_image[image.slug]) for image in rows]

    next_cursor = items[-1].cursor if has_more and items else None
    return ImagePage(items=items, next_cursor=next_cursor)


async def list_tag_kinds_with_counts(
    session: DbSession,
    selected_tag_slugs: Iterable[str] | None = None,
    include_not_ready: bool = False,
) -> list[TagKindTree]:
    """
    Every tag kind with its tags, counted within the currently filtered images.

    The selected tags are regrouped per kind and applied as one grouped filter,
    so counts shrink as more tags are selected, matching what list_images_page
    returns for the same selection.
    """
    selected = list(dict.fromkeys(validate_tag_slug(slug) for slug in selected_tag_slugs or ()))
    grouped = group_tag_slugs(selected)
    filtered = filtered_image_slugs(grouped, include_not_ready)
    selected_set = set(selected)

    tag_counts_result = await session.execute(
        select(ImageTags.tag_slug, func.count(distinct(ImageTags.image_slug)))
        .where(ImageTags.image_slug.in_(filtered))  # type: ignore[attr-defined]
        .group_by(ImageTags.tag_slug)
    )
    tag_counts = {row[0]: row[1] for row in tag_counts_result.all()}

    kind_counts_result = await session.execute(
        select(Tags.kind_slug, func.count(distinct(ImageTags.image_slug)))
        .join(ImageTags, ImageTags.tag_slug == Tags.slug)  # type: ignore[arg-type]
        .where(ImageTags.image_slug.in_(filtered))  # type: ignore[attr-defined]
        .group_by(Tags.kind_slug)
    )
    kind_counts = {row[0]: row[1] for row in kind_counts_result.all()}

    kinds = await session.scalars(select(TagKinds).order_by(TagKinds.name, TagKinds.slug))
    tags = await session.scalars(select(Tags).order_by(Tags.kind_slug, Tags.name, Tags.slug))

    tags_by_kind: dict[str, list] = {}
    for tag in tags:
        record = tag_record_from_row(tag, tag_counts.get(tag.slug, 0), selected_set)
        tags_by_kind.setdefault(tag.kind_slug, []).append(record)

    trees = []
    for kind in kinds:
        record = tag_kind_record_from_row(kind)
        kind_tags = tags_by_kind.get(kind.slug, [])
        trees.append(
            TagKindTree(
                **record.model_dump(),
                image_count=kind_counts.get(kind.slug, 0),
                has_selected=any(tag.selected for tag in kind_tags),
                tags=kind_tags,
            )
        )
    return trees
