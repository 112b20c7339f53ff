"""
Image upload orchestration.

An upload runs in named stages so failures can be attributed:

    fetch_source -> determine_ext -> probe_dimensions -> insert_image
        -> upload_object -> finalize -> completed

The image row is inserted (ready=False) and committed before the object is
stored, and tags are assigned in a second write session afterwards, so no
transaction stays open across blob storage I/O. When a later stage fails the
stored object and the row are removed again, best effort. Cleanup failures are
logged and never replace the original error. A crash between insert_image and
finalize leaves a ready=False row that listings ignore.
"""

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

import httpx

from gallery.config import SessionMode, settings
from gallery.core.database import Database
from gallery.core.errors import (
    CleanupError,
    GalleryError,
    MissingSystemTagDefinition,
    SourceFetchError,
    ValidationError,
)
from gallery.core.logging import get_logger, serialize_error
from gallery.core.validators import (
    normalize_image_ext,
    validate_image_name,
    validate_image_slug,
    validate_tag_slug,
)
from gallery.models import Tags
from gallery.schemas.image import ImageRecord, ImageUploadResponse
from gallery.services.image_processing import (
    calculate_sha256,
    ext_from_mime,
    ext_from_name,
    ext_from_url,
    get_image_dimensions,
)
from gallery.services.image_tags import set_image_tags
from gallery.services.images import delete_image, insert_image, mark_image_ready
from gallery.services.remote_fetch import fetch_remote_image, validate_source_url
from gallery.services.storage import BlobStore, object_key_for_image, public_url_for_key
from gallery.services.system_tags import ImageProperties, resolve_system_tags
from gallery.services.tags import get_user_tags

logger = get_logger(__name__)


class UploadStage(str, Enum):
    FETCH_SOURCE = "fetch_source"
    DETERMINE_EXT = "determine_ext"
    PROBE_DIMENSIONS = "probe_dimensions"
    INSERT_IMAGE = "insert_image"
    UPLOAD_OBJECT = "upload_object"
    FINALIZE = "finalize"
    COMPLETED = "completed"


@dataclass(frozen=True)
class FileSource:
    data: bytes
    filename: str | None = None
    content_type: str | None = None


@dataclass(frozen=True)
class UrlSource:
    url: str


@dataclass(frozen=True)
class UploadRequest:
    name: str
    slug: str
    source: FileSource | UrlSource
    tag_slugs: list[str] = field(default_factory=list)

    @property
    def source_type(self) -> str:
        return "file" if isinstance(self.source, FileSource) else "url"


@dataclass
class _SourceBytes:
    data: bytes
    content_type: str | None
    ext: str | None


def parse_upload_input(
    source_type: str,
    name: str,
    slug: str,
    tags: Iterable[str] = (),
    file_data: bytes | None = None,
    filename: str | None = None,
    content_type: str | None = None,
    url: str | None = None,
) -> UploadRequest:
    """Normalize raw form input into an UploadRequest, or raise ValidationError."""
    name = validate_image_name(name)
    slug = validate_image_slug(slug.strip().lower() if isinstance(slug, str) else slug)
    tag_slugs = list(
        dict.fromkeys(validate_tag_slug(tag) for tag in tags if tag and tag.strip())
    )

    source: FileSource | UrlSource
    if source_type == "file":
        if not file_data:
            raise ValidationError("An image file is required for file uploads")
        source = FileSource(data=file_data, filename=filename, content_type=content_type)
    elif source_type == "url":
        if not url:
            raise ValidationError("An image URL is required for URL uploads")
        source = UrlSource(url=validate_source_url(url))
    else:
        raise ValidationError(f"Upload source type must be 'file' or 'url': {source_type!r}")

    return UploadRequest(name=name, slug=slug, source=source, tag_slugs=tag_slugs)


async def _fetch_source(
    source: FileSource | UrlSource, http_client: httpx.AsyncClient | None
) -> _SourceBytes:
    if isinstance(source, FileSource):
        ext = ext_from_name(source.filename) or ext_from_mime(source.content_type)
        return _SourceBytes(data=source.data, content_type=source.content_type, ext=ext)

    fetched = await fetch_remote_image(source.url, http_client)
    ext = ext_from_url(source.url) or ext_from_mime(fetched.content_type)
    return _SourceBytes(data=fetched.data, content_type=fetched.content_type, ext=ext)


async def _check_tag_definitions(
    database: Database, user_tag_slugs: list[str], system_tag_slugs: list[str]
) -> None:
    """Fail before any write if a user tag is unusable or a system tag is undefined."""
    async with database.session(SessionMode.READ) as session:
        await get_user_tags(session, user_tag_slugs)
        for slug in system_tag_slugs:
            tag = await session.get(Tags, slug)
            if tag is None or not tag.system:
                raise MissingSystemTagDefinition(slug)


def _is_client_fault(error: Exception) -> bool:
    if isinstance(error, SourceFetchError):
        return error.client_fault
    return isinstance(error, GalleryError) and error.status_code < 500


async def _cleanup(
    database: Database,
    blob_store: BlobStore,
    request: UploadRequest,
    stage: UploadStage,
    uploaded_key: str | None,
    inserted: bool,
) -> None:
    if uploaded_key is not None:
        try:
            await blob_store.delete(uploaded_key)
        except Exception as e:
            cleanup_error = CleanupError(f"Failed to delete stored object {uploaded_key}")
            cleanup_error.__cause__ = e
            logger.warning(
                "upload_cleanup_failed",
                slug=request.slug,
                stage=stage.value,
                target="object",
                key=uploaded_key,
                error=serialize_error(cleanup_error),
            )

    if inserted:
        try:
            async with database.session(SessionMode.WRITE) as session:
                await delete_image(session, request.slug)
                await session.commit()
        except Exception as e:
            cleanup_error = CleanupError(f"Failed to delete image row {request.slug}")
            cleanup_error.__cause__ = e
            logger.warning(
                "upload_cleanup_failed",
                slug=request.slug,
                stage=stage.value,
                target="image",
                error=serialize_error(cleanup_error),
            )


async def upload_image(
    database: Database,
    blob_store: BlobStore,
    request: UploadRequest,
    http_client: httpx.AsyncClient | None = None,
    clock: Callable[[], float] = time.time,
) -> ImageUploadResponse:
    """
    Store a new image and assign its user and system tags.

    Raises the error of the failing stage after compensating cleanup.
    """
    started_at = time.perf_counter()
    stage = UploadStage.FETCH_SOURCE
    inserted = False
    uploaded_key: str | None = None

    logger.debug("upload_received", slug=request.slug, source_type=request.source_type)

    try:
        source = await _fetch_source(request.source, http_client)
        if not source.data:
            raise ValidationError("Image source is empty")
        if len(source.data) > settings.MAX_IMAGE_SIZE:
            raise ValidationError(
                f"File size exceeds maximum of {settings.MAX_IMAGE_SIZE} bytes"
            )

        stage = UploadStage.DETERMINE_EXT
        if not source.ext:
            raise ValidationError("Could not determine image extension")
        ext = normalize_image_ext(source.ext)

        stage = UploadStage.PROBE_DIMENSIONS
        width_px, height_px = get_image_dimensions(source.data)

        size_bytes = len(source.data)
        system_tag_slugs = resolve_system_tags(
            ImageProperties(width_px=width_px, height_px=height_px, size_bytes=size_bytes)
        )
        tag_slugs = list(dict.fromkeys(request.tag_slugs + system_tag_slugs))

        stage = UploadStage.INSERT_IMAGE
        await _check_tag_definitions(database, request.tag_slugs, system_tag_slugs)
        async with database.session(SessionMode.WRITE) as session:
            await insert_image(
                session,
                ImageRecord(
                    slug=request.slug,
                    ext=ext,
                    name=request.name,
                    added_at=int(clock()),
                    size_bytes=size_bytes,
                    width_px=width_px,
                    height_px=height_px,
                    sha256=calculate_sha256(source.data),
                    ready=False,
                ),
            )
            await session.commit()
        inserted = True

        stage = UploadStage.UPLOAD_OBJECT
        key = object_key_for_image(request.slug, ext)
        # Set before put so a partially written object is removed too
        uploaded_key = key
        await blob_store.put(key, source.data, source.content_type)

        stage = UploadStage.FINALIZE
        async with database.session(SessionMode.WRITE) as session:
            await set_image_tags(session, request.slug, tag_slugs)
            await mark_image_ready(session, request.slug)
            await session.commit()

        stage = UploadStage.COMPLETED
    except Exception as e:
        await _cleanup(database, blob_store, request, stage, uploaded_key, inserted)

        log = logger.warning if _is_client_fault(e) else logger.error
        log(
            "upload_failed",
            slug=request.slug,
            source_type=request.source_type,
            stage=stage.value,
            error=serialize_error(e),
        )
        raise

    logger.info(
        "upload_completed",
        slug=request.slug,
        ext=ext,
        size_bytes=size_bytes,
        width_px=width_px,
        height_px=height_px,
        tag_count=len(tag_slugs),
        duration_ms=round((time.perf_counter() - started_at) * 1000),
    )
    return ImageUploadResponse(
        message="Image uploaded successfully",
        slug=request.slug,
        url=public_url_for_key(key),
        tag_slugs=tag_slugs,
        system_tag_slugs=system_tag_slugs,
    )
