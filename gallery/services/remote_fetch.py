"""Fetch image bytes from a user-supplied URL."""

from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from gallery.config import settings
from gallery.core.errors import SourceFetchError, ValidationError
from gallery.core.logging import get_logger, serialize_error

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    content_type: str | None


def validate_source_url(url: str) -> str:
    url = url.strip() if isinstance(url, str) else ""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValidationError(f"Image URL must be an absolute http(s) URL: {url!r}")
    return url


async def _read_limited(response: httpx.Response, max_bytes: int, host: str) -> bytes:
    declared = response.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        logger.warning("remote_image_too_large", host=host, content_length=int(declared))
        raise ValidationError(f"File size exceeds maximum of {max_bytes} bytes")

    chunks: list[bytes] = []
    total = 0
    async for part in response.aiter_bytes():
        total += len(part)
        if total > max_bytes:
            logger.warning("remote_image_too_large", host=host, read_bytes=total)
            raise ValidationError(f"File size exceeds maximum of {max_bytes} bytes")
        chunks.append(part)
    return b"".join(chunks)


async def _stream(
    client: httpx.AsyncClient, url: str, host: str, max_bytes: int
) -> tuple[int, str | None, bytes]:
    async with client.stream("GET", url, follow_redirects=True) as response:
        if not response.is_success:
            return response.status_code, None, b""
        data = await _read_limited(response, max_bytes, host)
        return response.status_code, response.headers.get("content-type"), data


async def fetch_remote_image(
    url: str,
    client: httpx.AsyncClient | None = None,
    max_bytes: int | None = None,
) -> FetchedImage:
    """
    GET the URL and return its body.

    The body is streamed and the download aborts with ValidationError as soon
    as it passes max_bytes (MAX_IMAGE_SIZE by default).

    A 4xx answer is the user's fault (bad link) and raises SourceFetchError with
    client_fault=True, logged at warning. 5xx answers and network failures are
    logged at error.
    """
    url = validate_source_url(url)
    host = urlsplit(url).netloc
    if max_bytes is None:
        max_bytes = settings.MAX_IMAGE_SIZE

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.REMOTE_FETCH_TIMEOUT) as own_client:
                status, content_type, data = await _stream(own_client, url, host, max_bytes)
        else:
            status, content_type, data = await _stream(client, url, host, max_bytes)
    except httpx.HTTPError as e:
        logger.error("remote_image_fetch_failed", host=host, error=serialize_error(e))
        raise SourceFetchError(f"Failed to fetch image URL: {e}") from e

    if 400 <= status < 500:
        logger.warning("remote_image_rejected", host=host, status=status)
        raise SourceFetchError(
            f"Failed to fetch image URL ({status})",
            status=status,
            client_fault=True,
        )
    if not 200 <= status < 300:
        logger.error("remote_image_fetch_failed", host=host, status=status)
        raise SourceFetchError(f"Failed to fetch image URL ({status})", status=status)

    return FetchedImage(data=data, content_type=content_type)
