"""
Tags API endpoints
"""

from typing import Annotated

from fastapi import APIRouter, Path, status

from gallery.api.dependencies import ReadSession, WriteSession
from gallery.schemas.tag import (
    AssignableTag,
    ReapplySystemTagsResponse,
    TagCreate,
    TagDefinitionRecord,
    TagUpdate,
)
from gallery.services.image_tags import reapply_system_tags_for_all_images
from gallery.services.tags import (
    create_tag,
    delete_tag,
    list_assignable_tags,
    list_tags_for_management,
    upsert_tag,
)

router = APIRouter(prefix="/tags", tags=["tags"])

KindPath = Annotated[str, Path(description="Tag kind slug")]
ValuePath = Annotated[str, Path(description="Tag value within its kind")]


@router.get("/assignable", response_model=list[AssignableTag])
async def get_assignable_tags(session: ReadSession) -> list[AssignableTag]:
    """Tags users may assign to images (everything except system tags)."""
    return await list_assignable_tags(session)


@router.get("/manage", response_model=list[TagDefinitionRecord])
async def get_tags_manage(session: ReadSession) -> list[TagDefinitionRecord]:
    return await list_tags_for_management(session)


@router.post("", response_model=TagDefinitionRecord, status_code=status.HTTP_201_CREATED)
async def post_tag(payload: TagCreate, session: WriteSession) -> TagDefinitionRecord:
    tag = await create_tag(session, payload.slug, payload.name)
    await session.commit()
    return tag


@router.post("/system/reapply", response_model=ReapplySystemTagsResponse)
async def reapply_system_tags(session: WriteSession) -> ReapplySystemTagsResponse:
    """Recompute the system tags of every image."""
    result = await reapply_system_tags_for_all_images(session)
    await session.commit()
    return result


@router.put("/{kind}/{value}", response_model=TagDefinitionRecord)
async def put_tag(
    kind: KindPath, value: ValuePath, payload: TagUpdate, session: WriteSession
) -> TagDefinitionRecord:
    """Create or rename a user tag."""
    tag = await upsert_tag(session, f"{kind}/{value}", payload.name)
    await session.commit()
    return tag


@router.delete("/{kind}/{value}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_tag(kind: KindPath, value: ValuePath, session: WriteSession) -> None:
    await delete_tag(session, f"{kind}/{value}")
    await session.commit()
