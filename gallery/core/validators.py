"""
Validators for primitive domain values.

Each validate_* function either returns the (normalized) value or raises
ValidationError with a message describing the expected shape. Nothing is
silently coerced: values outside the contract always fail.
"""

import re

from gallery.core.errors import ValidationError

SLUG_PATTERN = r"[a-z][a-z0-9]*(?:-[a-z0-9]+)*"
# Tag values may start with a digit: "resolution/4k", "aspect-ratio/16-9"
TAG_VALUE_PATTERN = r"[a-z0-9]+(?:-[a-z0-9]+)*"
MAX_PAGE_LIMIT = 200

_SLUG_RE = re.compile(rf"^{SLUG_PATTERN}$")
_TAG_SLUG_RE = re.compile(rf"^({SLUG_PATTERN})/({TAG_VALUE_PATTERN})$")
_EXT_RE = re.compile(r"^[a-z0-9]+$")
_BASE64_SHA256_RE = re.compile(r"^[A-Za-z0-9+/]{43}=$")


def validate_tag_kind_slug(value: str) -> str:
    """Tag kind slugs are lowercase hyphenated tokens, e.g. ``aspect-ratio``."""
    if not isinstance(value, str) or not _SLUG_RE.match(value):
        raise ValidationError(f"Tag kind slug must be a lowercase hyphenated slug: {value!r}")
    return value


def validate_tag_slug(value: str) -> str:
    """
    Validate a composite ``kind/slug`` tag identifier.

    Input is trimmed and lowercased before matching, so ``" Resolution/4K "``
    normalizes to ``"resolution/4k"``.
    """
    if not isinstance(value, str):
        raise ValidationError("Tag slug must be a string in `kind/slug` format")
    normalized = value.strip().lower()
    if not _TAG_SLUG_RE.match(normalized):
        raise ValidationError(f"Tag slug must match `kind/slug` format: {value!r}")
    return normalized


def split_tag_slug(value: str) -> tuple[str, str]:
    """Split a tag slug into its (kind slug, value) parts."""
    kind_slug, tag_value = validate_tag_slug(value).split("/")
    return kind_slug, tag_value


def validate_image_slug(value: str) -> str:
    if not isinstance(value, str) or not _SLUG_RE.match(value):
        raise ValidationError(f"Image slug must be a lowercase hyphenated slug: {value!r}")
    return value


def normalize_image_ext(value: str) -> str:
    """Trim, lowercase and strip leading dots: ``" .JPG"`` becomes ``"jpg"``."""
    if not isinstance(value, str):
        raise ValidationError("Image extension must be a string")
    normalized = value.strip().lower().lstrip(".")
    if not _EXT_RE.match(normalized):
        raise ValidationError(f"Image extension must be alphanumeric: {value!r}")
    return normalized


def validate_base64_sha256(value: str) -> str:
    if not isinstance(value, str) or not _BASE64_SHA256_RE.match(value.strip()):
        raise ValidationError("sha256 must be a base64-encoded SHA-256 digest")
    return value.strip()


def _validate_int(value: int, *, minimum: int, message: str) -> int:
    # bool is an int subclass but never a valid measurement
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError(message)
    return value


def validate_unix_seconds(value: int) -> int:
    return _validate_int(
        value, minimum=0, message="Unix timestamp seconds must be a non-negative integer"
    )


def validate_size_bytes(value: int) -> int:
    return _validate_int(value, minimum=0, message="Image size bytes must be a non-negative integer")


def validate_width_px(value: int) -> int:
    return _validate_int(value, minimum=1, message="Image width must be a positive integer")


def validate_height_px(value: int) -> int:
    return _validate_int(value, minimum=1, message="Image height must be a positive integer")


def validate_page_limit(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not (
        1 <= value <= MAX_PAGE_LIMIT
    ):
        raise ValidationError(
            f"Page limit must be an integer between 1 and {MAX_PAGE_LIMIT}"
        )
    return value


def _validate_name(value: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} must not be empty")
    return value.strip()


def validate_image_name(value: str) -> str:
    return _validate_name(value, "Image name")


def validate_tag_name(value: str) -> str:
    return _validate_name(value, "Tag name")


def validate_tag_kind_name(value: str) -> str:
    return _validate_name(value, "Tag kind name")
