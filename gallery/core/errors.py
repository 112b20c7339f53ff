"""
Domain error taxonomy.

Every error raised by the gallery core derives from GalleryError and carries the
HTTP status the API layer should answer with. Messages name the violated
contract and are safe to show to users.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class GalleryError(Exception):
    """Base class for all gallery domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GalleryError):
    """Malformed input: bad slug format, out-of-range limit, empty name, ..."""

    status_code = status.HTTP_400_BAD_REQUEST


# Not found


class NotFoundError(GalleryError):
    """A referenced image, tag, or tag kind does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ImageNotFound(NotFoundError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Image not found: {slug}")
        self.slug = slug


class TagNotFound(NotFoundError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Tag not found: {slug}")
        self.slug = slug


class KindNotFound(NotFoundError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Tag kind not found: {slug}")
        self.slug = slug


# Invariant violations


class InvariantViolation(GalleryError):
    """The request contradicts a domain invariant (caller or configuration bug)."""

    status_code = status.HTTP_409_CONFLICT


class AlreadyExists(InvariantViolation):
    def __init__(self, entity: str, slug: str) -> None:
        super().__init__(f"{entity} already exists: {slug}")
        self.slug = slug


class KindIsSystemOnly(InvariantViolation):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Tag kind is system-only: {slug}")
        self.slug = slug


class KindNotEmpty(InvariantViolation):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Tag kind has tags and cannot be deleted: {slug}")
        self.slug = slug


class SystemTagNotEditable(InvariantViolation):
    def __init__(self, slug: str) -> None:
        super().__init__(f"System tags are not editable: {slug}")
        self.slug = slug


class MissingSystemTagDefinition(InvariantViolation):
    def __init__(self, slug: str) -> None:
        super().__init__(f"System tag definition is missing: {slug}")
        self.slug = slug


# Upload sources


class SourceFetchError(GalleryError):
    """
    Fetching a remote image URL failed.

    client_fault is True when the remote answered with a 4xx status, which is an
    expected outcome of a bad user-supplied URL rather than a system fault.
    """

    def __init__(self, message: str, *, status: int | None = None, client_fault: bool = False):
        super().__init__(message)
        self.status = status
        self.client_fault = client_fault
        self.status_code = 400 if client_fault else 502


# Programming errors


class SessionStateError(GalleryError):
    """An operation was attempted on a session that is not open (or not writable)."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(f"Cannot {operation} when session is {state}")
        self.operation = operation
        self.state = state


InvalidSessionState = SessionStateError


class CleanupError(GalleryError):
    """A compensating action failed. Logged by the caller, never raised past it."""


async def gallery_error_handler(request: Request, exc: GalleryError) -> JSONResponse:
    """Render domain errors as {"detail": message} with the error's status code."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
