"""
Typed row decoding at the query boundary.

One function per row shape. Every field passes through its validator, so a row
that violates a domain contract fails loudly instead of leaking into responses.
"""

from typing import Any

from gallery.core.validators import (
    normalize_image_ext,
    validate_base64_sha256,
    validate_height_px,
    validate_image_name,
    validate_image_slug,
    validate_size_bytes,
    validate_tag_kind_name,
    validate_tag_kind_slug,
    validate_tag_name,
    validate_tag_slug,
    validate_unix_seconds,
    validate_width_px,
)
from gallery.models import Images, TagKinds, Tags
from gallery.schemas.image import ImageListItem, ImageRecord
from gallery.schemas.tag import (
    ImageTagSummary,
    TagDefinitionRecord,
    TagKindRecord,
    TagRecord,
)


def image_record_from_row(image: Images) -> ImageRecord:
    return ImageRecord(
        slug=validate_image_slug(image.slug),
        ext=normalize_image_ext(image.ext),
        name=validate_image_name(image.name),
        added_at=validate_unix_seconds(image.added_at),
        size_bytes=validate_size_bytes(image.size_bytes),
        width_px=validate_width_px(image.width_px),
        height_px=validate_height_px(image.height_px),
        sha256=validate_base64_sha256(image.sha256),
        ready=bool(image.ready),
    )


def image_list_item_from_row(image: Images, tags: list[ImageTagSummary]) -> ImageListItem:
    record = image_record_from_row(image)
    return ImageListItem(**record.model_dump(), tags=tags)


def tag_kind_record_from_row(kind: TagKinds) -> TagKindRecord:
    return TagKindRecord(
        slug=validate_tag_kind_slug(kind.slug),
        name=validate_tag_kind_name(kind.name),
        system_only=bool(kind.system_only),
    )


def tag_definition_record_from_row(tag: Tags) -> TagDefinitionRecord:
    return TagDefinitionRecord(
        slug=validate_tag_slug(tag.slug),
        name=validate_tag_name(tag.name),
        kind_slug=validate_tag_kind_slug(tag.kind_slug),
        system=bool(tag.system),
    )


def tag_summary_from_row(tag: Tags) -> ImageTagSummary:
    return ImageTagSummary(**tag_definition_record_from_row(tag).model_dump())


def tag_record_from_row(
    tag: Tags, image_count: Any = 0, selected: frozenset[str] | set[str] = frozenset()
) -> TagRecord:
    definition = tag_definition_record_from_row(tag)
    return TagRecord(
        **definition.model_dump(),
        image_count=int(image_count or 0),
        selected=definition.slug in selected,
    )
