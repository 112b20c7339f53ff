"""
Images API endpoints
"""

from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, File, Form, Path, Request, UploadFile, status

from gallery.api.dependencies import (
    BlobStoreDep,
    DatabaseDep,
    ImageListParams,
    ReadSession,
    SelectedTags,
    WriteSession,
)
from gallery.config import settings
from gallery.core.errors import ValidationError
from gallery.schemas.image import (
    BulkModifyImagesTagsRequest,
    BulkModifyImagesTagsResult,
    ImageNameUpdate,
    ImagePage,
    ImageRecord,
    ImageUploadResponse,
    ImageUserTagsUpdate,
    ImageWithTags,
)
from gallery.services.image_tags import bulk_modify_images_tags, set_image_user_tags
from gallery.services.images import delete_image, get_image_by_slug, update_image_name
from gallery.services.listing import group_tag_slugs, list_images_page
from gallery.services.storage import object_key_for_image
from gallery.services.upload import parse_upload_input, upload_image

router = APIRouter(prefix="/images", tags=["images"])

SlugPath = Annotated[str, Path(description="Image slug")]


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


async def read_upload_file(file: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded file, refusing anything larger than max_bytes."""
    if file.size is not None and file.size > max_bytes:
        raise ValidationError(f"File size exceeds maximum of {max_bytes} bytes")
    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(f"File size exceeds maximum of {max_bytes} bytes")
    return data


@router.get("", response_model=ImagePage)
async def list_images(
    params: Annotated[ImageListParams, Depends()],
    tags: SelectedTags,
    session: ReadSession,
) -> ImagePage:
    """
    List ready images newest first.

    Selected tags are grouped per kind: OR within a kind, AND across kinds.
    Pass next_cursor back as cursor_added_at/cursor_slug for the next page.
    """
    return await list_images_page(
        session,
        cursor=params.cursor,
        limit=params.limit,
        grouped_filter=group_tag_slugs(tags),
    )


@router.post("/upload", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload(
    database: DatabaseDep,
    blob_store: BlobStoreDep,
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    source_type: Annotated[str, Form()],
    name: Annotated[str, Form()],
    slug: Annotated[str, Form()],
    tags: Annotated[list[str] | None, Form()] = None,
    url: Annotated[str | None, Form()] = None,
    file: Annotated[UploadFile | None, File()] = None,
) -> ImageUploadResponse:
    """
    Upload an image from a file or a remote URL.

    System tags are derived from the image dimensions and merged with the
    requested user tags.
    """
    file_data = (
        await read_upload_file(file, settings.MAX_IMAGE_SIZE) if file is not None else None
    )
    request = parse_upload_input(
        source_type,
        name,
        slug,
        tags or [],
        file_data=file_data,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
        url=url,
    )
    return await upload_image(database, blob_store, request, http_client)


@router.post("/tags/bulk", response_model=BulkModifyImagesTagsResult)
async def bulk_modify_tags(
    payload: BulkModifyImagesTagsRequest,
    session: WriteSession,
) -> BulkModifyImagesTagsResult:
    """Add and remove user tags across many images. Unknown images are skipped."""
    result = await bulk_modify_images_tags(
        session, payload.image_slugs, payload.add_tag_slugs, payload.remove_tag_slugs
    )
    await session.commit()
    return result


@router.get("/{slug}", response_model=ImageWithTags)
async def get_image(slug: SlugPath, session: ReadSession) -> ImageWithTags:
    return await get_image_by_slug(session, slug)


@router.patch("/{slug}", response_model=ImageRecord)
async def rename_image(
    slug: SlugPath, payload: ImageNameUpdate, session: WriteSession
) -> ImageRecord:
    image = await update_image_name(session, slug, payload.name)
    await session.commit()
    return image


@router.put("/{slug}/tags", response_model=ImageWithTags)
async def replace_image_user_tags(
    slug: SlugPath, payload: ImageUserTagsUpdate, session: WriteSession
) -> ImageWithTags:
    """Replace the image's user tags. System tags are kept."""
    await set_image_user_tags(session, slug, payload.tag_slugs)
    image = await get_image_by_slug(session, slug)
    await session.commit()
    return image


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_image(slug: SlugPath, session: WriteSession, blob_store: BlobStoreDep) -> None:
    """Delete the image row, its tag associations and the stored object."""
    image = await delete_image(session, slug)
    await session.commit()
    await blob_store.delete(object_key_for_image(image.slug, image.ext))
