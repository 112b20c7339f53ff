"""
Image inspection helpers: extension derivation, dimension probing, hashing.
"""

import base64
import hashlib
import re
from io import BytesIO
from urllib.parse import urlsplit

from PIL import Image, UnidentifiedImageError

from gallery.core.errors import ValidationError

MIME_TO_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/avif": "avif",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
    "image/svg+xml": "svg",
}

_NAME_EXT_RE = re.compile(r"\.([a-z0-9]+)$")


def ext_from_name(name: str | None) -> str | None:
    if not name:
        return None
    match = _NAME_EXT_RE.search(name.lower())
    return match.group(1) if match else None


def ext_from_url(url: str) -> str | None:
    return ext_from_name(urlsplit(url).path)


def ext_from_mime(content_type: str | None) -> str | None:
    """Map a Content-Type header (parameters allowed) to an extension."""
    if not content_type:
        return None
    mime = content_type.split(";")[0].strip().lower()
    return MIME_TO_EXT.get(mime)


def get_image_dimensions(data: bytes) -> tuple[int, int]:
    """
    Read (width, height) from the image header.

    Raises:
        ValidationError: if the bytes are not a recognized image or the
            pixel count is over Pillow's decompression bomb limit
    """
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
    except Image.DecompressionBombError as e:
        raise ValidationError("Image exceeds the maximum pixel count") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ValidationError("Could not detect image dimensions") from e

    if width < 1 or height < 1:
        raise ValidationError("Could not detect image dimensions")
    return width, height


def calculate_sha256(data: bytes) -> str:
    """Base64-encoded SHA-256 digest (44 characters, ending in '=')."""
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")
