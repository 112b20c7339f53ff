"""
Shared FastAPI dependencies.

The Database and BlobStore handles live on ``app.state`` (built in the app
lifespan). Routes receive them, or a transactional session, through these
dependencies; tests override get_database and get_blob_store.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Query, Request
from pydantic import BaseModel, Field

from gallery.config import SessionMode, settings
from gallery.core.database import Database, DbSession
from gallery.core.errors import ValidationError
from gallery.schemas.image import ImageCursor
from gallery.services.storage import BlobStore


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


async def get_read_session(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[DbSession, None]:
    async with database.session(SessionMode.READ) as session:
        yield session


async def get_write_session(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[DbSession, None]:
    """Write session; the route commits, anything uncommitted is rolled back."""
    async with database.session(SessionMode.WRITE) as session:
        yield session


DatabaseDep = Annotated[Database, Depends(get_database)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
ReadSession = Annotated[DbSession, Depends(get_read_session)]
WriteSession = Annotated[DbSession, Depends(get_write_session)]


class ImageListParams(BaseModel):
    """Pagination query parameters for the image listing."""

    limit: int = Field(default=settings.DEFAULT_PAGE_LIMIT, description="Page size")
    cursor_added_at: int | None = Field(default=None, description="Cursor position: added_at")
    cursor_slug: str | None = Field(default=None, description="Cursor position: slug")

    @property
    def cursor(self) -> ImageCursor | None:
        if self.cursor_added_at is None and self.cursor_slug is None:
            return None
        if self.cursor_added_at is None or self.cursor_slug is None:
            raise ValidationError("cursor_added_at and cursor_slug must be given together")
        return ImageCursor(added_at=self.cursor_added_at, slug=self.cursor_slug)


def get_selected_tags(
    tag: Annotated[list[str] | None, Query(description="Selected tag slugs (kind/value)")] = None,
) -> list[str]:
    return tag or []


SelectedTags = Annotated[list[str], Depends(get_selected_tags)]
