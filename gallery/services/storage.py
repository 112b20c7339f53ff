"""
Blob storage for image objects.

Objects are keyed ``{slug}.{ext}``. The API depends on the BlobStore protocol;
LocalBlobStore keeps objects as files under STORAGE_PATH, which the app serves
at IMAGE_BASE_URL.
"""

import asyncio
import re
from pathlib import Path
from typing import Protocol

from gallery.config import settings
from gallery.core.errors import ValidationError
from gallery.core.logging import get_logger, serialize_error
from gallery.core.validators import normalize_image_ext, validate_image_slug

logger = get_logger(__name__)

_OBJECT_KEY_RE = re.compile(r"^[a-z0-9-]+\.[a-z0-9]+$")


def object_key_for_image(slug: str, ext: str) -> str:
    return f"{validate_image_slug(slug)}.{normalize_image_ext(ext)}"


def public_url_for_key(key: str) -> str:
    return f"{settings.IMAGE_BASE_URL.rstrip('/')}/{key}"


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...


class LocalBlobStore:
    """Filesystem-backed blob store. delete() of a missing key is a no-op."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        if not _OBJECT_KEY_RE.match(key):
            raise ValidationError(f"Invalid object key: {key!r}")
        return self.root / key

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        path = self.path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write then rename so readers never see a partial object
            temp_path = path.with_name(f".{path.name}.tmp")
            temp_path.write_bytes(data)
            temp_path.replace(path)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.error("blob_put_failed", key=key, error=serialize_error(e))
            raise

        logger.debug("blob_stored", key=key, size_bytes=len(data), content_type=content_type)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            logger.debug("blob_delete_missing", key=key)
        except OSError as e:
            logger.error("blob_delete_failed", key=key, error=serialize_error(e))
            raise

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self.path_for(key).is_file)
