"""
Tag kinds API endpoints
"""

from typing import Annotated

from fastapi import APIRouter, Path, status

from gallery.api.dependencies import ReadSession, SelectedTags, WriteSession
from gallery.schemas.tag import TagKindCreate, TagKindRecord, TagKindTree, TagKindUpdate
from gallery.services.listing import list_tag_kinds_with_counts
from gallery.services.tags import (
    create_tag_kind,
    delete_tag_kind,
    list_tag_kinds_for_management,
    upsert_tag_kind,
)

router = APIRouter(prefix="/tag-kinds", tags=["tag-kinds"])

KindSlugPath = Annotated[str, Path(description="Tag kind slug")]


@router.get("", response_model=list[TagKindTree])
async def list_tag_kinds(tags: SelectedTags, session: ReadSession) -> list[TagKindTree]:
    """
    Every tag kind with its tags and image counts.

    Counts are taken within the images matching the selected tags, so they
    shrink as more tags are selected.
    """
    return await list_tag_kinds_with_counts(session, tags)


@router.get("/manage", response_model=list[TagKindRecord])
async def list_tag_kinds_manage(session: ReadSession) -> list[TagKindRecord]:
    return await list_tag_kinds_for_management(session)


@router.post("", response_model=TagKindRecord, status_code=status.HTTP_201_CREATED)
async def create_kind(payload: TagKindCreate, session: WriteSession) -> TagKindRecord:
    kind = await create_tag_kind(session, payload.slug, payload.name)
    await session.commit()
    return kind


@router.put("/{slug}", response_model=TagKindRecord)
async def update_kind(
    slug: KindSlugPath, payload: TagKindUpdate, session: WriteSession
) -> TagKindRecord:
    """Create or rename a tag kind."""
    kind = await upsert_tag_kind(session, slug, payload.name)
    await session.commit()
    return kind


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_kind(slug: KindSlugPath, session: WriteSession) -> None:
    await delete_tag_kind(session, slug)
    await session.commit()
