"""
Tag and tag kind management.

All mutating functions require a write session and leave committing to the
caller. Validation happens before any write so failures never partially apply.
"""

from sqlalchemy import delete, func, select

from gallery.core.database import DbSession
from gallery.core.errors import (
    AlreadyExists,
    KindIsSystemOnly,
    KindNotEmpty,
    KindNotFound,
    SystemTagNotEditable,
    TagNotFound,
)
from gallery.core.logging import get_logger
from gallery.core.validators import (
    split_tag_slug,
    validate_tag_kind_name,
    validate_tag_kind_slug,
    validate_tag_name,
    validate_tag_slug,
)
from gallery.models import TagKinds, Tags
from gallery.schemas.tag import AssignableTag, TagDefinitionRecord, TagKindRecord
from gallery.services.rows import tag_definition_record_from_row, tag_kind_record_from_row
from gallery.services.system_tags import SYSTEM_TAG_KINDS, SYSTEM_TAG_RULES, system_tag_vocabulary

logger = get_logger(__name__)


# Lookups


async def get_tag_kind(session: DbSession, slug: str) -> TagKinds:
    kind = await session.get(TagKinds, validate_tag_kind_slug(slug))
    if kind is None:
        raise KindNotFound(slug)
    return kind


async def get_tag(session: DbSession, slug: str) -> Tags:
    tag = await session.get(Tags, validate_tag_slug(slug))
    if tag is None:
        raise TagNotFound(slug)
    return tag


async def get_user_tags(session: DbSession, slugs: list[str]) -> list[Tags]:
    """
    Load tags that a user may assign, in the order requested.

    Raises TagNotFound for the first unknown slug and SystemTagNotEditable for
    the first system tag.
    """
    if not slugs:
        return []

    rows = await session.scalars(select(Tags).where(Tags.slug.in_(slugs)))  # type: ignore[attr-defined]
    by_slug = {tag.slug: tag for tag in rows}

    tags = []
    for slug in slugs:
        tag = by_slug.get(slug)
        if tag is None:
            raise TagNotFound(slug)
        if tag.system:
            raise SystemTagNotEditable(slug)
        tags.append(tag)
    return tags


# Tag kinds


async def create_tag_kind(session: DbSession, slug: str, name: str) -> TagKindRecord:
    session.require_write("create tag kind")
    slug = validate_tag_kind_slug(slug)
    name = validate_tag_kind_name(name)

    if await session.get(TagKinds, slug) is not None:
        raise AlreadyExists("Tag kind", slug)

    kind = TagKinds(slug=slug, name=name, system_only=False)
    await session.insert_new(kind, "Tag kind", slug)

    logger.info("tag_kind_created", kind_slug=slug)
    return tag_kind_record_from_row(kind)


async def upsert_tag_kind(session: DbSession, slug: str, name: str) -> TagKindRecord:
    """Insert a kind or rename an existing one. system_only is never changed here."""
    session.require_write("upsert tag kind")
    slug = validate_tag_kind_slug(slug)
    name = validate_tag_kind_name(name)

    kind = await session.get(TagKinds, slug)
    if kind is None:
        kind = TagKinds(slug=slug, name=name, system_only=False)
        session.add(kind)
    else:
        kind.name = name
    await session.flush()

    return tag_kind_record_from_row(kind)


async def delete_tag_kind(session: DbSession, slug: str) -> None:
    session.require_write("delete tag kind")
    kind = await get_tag_kind(session, slug)

    tag_count = await session.scalar(
        select(func.count()).select_from(Tags).where(Tags.kind_slug == kind.slug)  # type: ignore[arg-type]
    )
    if tag_count:
        raise KindNotEmpty(kind.slug)

    await session.execute(delete(TagKinds).where(TagKinds.slug == kind.slug))  # type: ignore[arg-type]
    logger.info("tag_kind_deleted", kind_slug=kind.slug)


async def list_tag_kinds_for_management(session: DbSession) -> list[TagKindRecord]:
    rows = await session.scalars(select(TagKinds).order_by(TagKinds.name, TagKinds.slug))
    return [tag_kind_record_from_row(kind) for kind in rows]


# Tags


async def _get_user_kind(session: DbSession, kind_slug: str) -> TagKinds:
    kind = await get_tag_kind(session, kind_slug)
    if kind.system_only:
        raise KindIsSystemOnly(kind.slug)
    return kind


async def create_tag(session: DbSession, slug: str, name: str) -> TagDefinitionRecord:
    """Create a user tag; the kind is derived from the slug prefix."""
    session.require_write("create tag")
    slug = validate_tag_slug(slug)
    name = validate_tag_name(name)
    kind_slug, _ = split_tag_slug(slug)

    await _get_user_kind(session, kind_slug)
    if await session.get(Tags, slug) is not None:
        raise AlreadyExists("Tag", slug)

    tag = Tags(slug=slug, name=name, kind_slug=kind_slug, system=False)
    await session.insert_new(tag, "Tag", slug)

    logger.info("tag_created", tag_slug=slug)
    return tag_definition_record_from_row(tag)


async def upsert_tag(session: DbSession, slug: str, name: str) -> TagDefinitionRecord:
    session.require_write("upsert tag")
    slug = validate_tag_slug(slug)
    name = validate_tag_name(name)
    kind_slug, _ = split_tag_slug(slug)

    await _get_user_kind(session, kind_slug)

    tag = await session.get(Tags, slug)
    if tag is None:
        tag = Tags(slug=slug, name=name, kind_slug=kind_slug, system=False)
        session.add(tag)
    elif tag.system:
        raise SystemTagNotEditable(slug)
    else:
        tag.name = name
    await session.flush()

    return tag_definition_record_from_row(tag)


async def delete_tag(session: DbSession, slug: str) -> None:
    """Delete a user tag. Its image associations go with it (ON DELETE CASCADE)."""
    session.require_write("delete tag")
    tag = await get_tag(session, slug)
    if tag.system:
        raise SystemTagNotEditable(tag.slug)

    await session.execute(delete(Tags).where(Tags.slug == tag.slug))  # type: ignore[arg-type]
    logger.info("tag_deleted", tag_slug=tag.slug)


async def list_assignable_tags(session: DbSession) -> list[AssignableTag]:
    """All non-system tags, ordered by kind then name."""
    rows = await session.scalars(
        select(Tags)
        .where(Tags.system == False)  # noqa: E712
        .order_by(Tags.kind_slug, Tags.name, Tags.slug)
    )
    return [AssignableTag(slug=tag.slug, name=tag.name) for tag in rows]


async def list_tags_for_management(session: DbSession) -> list[TagDefinitionRecord]:
    rows = await session.scalars(select(Tags).order_by(Tags.kind_slug, Tags.name, Tags.slug))
    return [tag_definition_record_from_row(tag) for tag in rows]


# System tag vocabulary


async def ensure_system_tag_definitions(session: DbSession) -> int:
    """
    Insert the kinds and tags the rule engine can emit, if they are missing.

    Existing rows are left as they are. Returns the number of rows inserted.
    """
    session.require_write("seed system tags")
    inserted = 0

    for kind_slug, kind_name in SYSTEM_TAG_KINDS.items():
        if await session.get(TagKinds, kind_slug) is None:
            session.add(TagKinds(slug=kind_slug, name=kind_name, system_only=True))
            inserted += 1
    await session.flush()

    for tag_slug, kind_slug, label in system_tag_vocabulary(SYSTEM_TAG_RULES):
        if await session.get(Tags, tag_slug) is None:
            session.add(Tags(slug=tag_slug, name=label, kind_slug=kind_slug, system=True))
            inserted += 1
    await session.flush()

    if inserted:
        logger.info("system_tags_seeded", inserted=inserted)
    return inserted
