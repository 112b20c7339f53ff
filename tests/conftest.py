"""
Pytest configuration and shared fixtures.

Every test gets its own SQLite database file (tables created from the SQLModel
metadata, system tag vocabulary seeded) and its own blob store directory.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy import select

from gallery.api.dependencies import get_blob_store, get_database
from gallery.api.v1.images import get_http_client
from gallery.config import SessionMode
from gallery.core.database import Database, DbSession
from gallery.main import app as main_app
from gallery.models import Images, ImageTags, TagKinds, Tags
from gallery.services.image_processing import calculate_sha256
from gallery.services.storage import LocalBlobStore
from gallery.services.tags import ensure_system_tag_definitions


def make_image_bytes(width: int, height: int, fmt: str = "PNG") -> bytes:
    """Encode a solid-color image of the given size."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), (40, 90, 160)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(scope="function")
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """
    Fresh SQLite database with all tables and the system tag vocabulary.

    Function-scoped so every test starts from a clean slate.
    """
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'gallery-test.db'}")
    await db.create_all()
    async with db.session(SessionMode.WRITE) as session:
        await ensure_system_tag_definitions(session)
        await session.commit()

    yield db

    await db.dispose()


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def remote_images() -> dict[str, httpx.Response]:
    """
    URL -> canned response served by the mocked HTTP client.

    Unknown URLs answer 404.
    """
    return {}


@pytest.fixture
async def http_client(
    remote_images: dict[str, httpx.Response],
) -> AsyncGenerator[httpx.AsyncClient, None]:
    def handler(request: httpx.Request) -> httpx.Response:
        response = remote_images.get(str(request.url))
        if response is None:
            return httpx.Response(404)
        return response

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture(scope="function")
def app(
    database: Database, blob_store: LocalBlobStore, http_client: httpx.AsyncClient
) -> FastAPI:
    """FastAPI app wired to the test database, blob store and HTTP client."""
    main_app.dependency_overrides[get_database] = lambda: database
    main_app.dependency_overrides[get_blob_store] = lambda: blob_store
    main_app.dependency_overrides[get_http_client] = lambda: http_client
    yield main_app
    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for API tests.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/v1/images")
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ============================================================================
# Data factories
# ============================================================================


@pytest.fixture
def add_image(database: Database) -> Callable[..., Awaitable[Images]]:
    """
    Insert an image row (and optional tag links) directly.

    Usage:
        await add_image("sunset", added_at=10, tags=["subject/nature"])
    """

    async def _add_image(
        slug: str,
        *,
        added_at: int = 1_700_000_000,
        width_px: int = 800,
        height_px: int = 600,
        size_bytes: int = 1024,
        ext: str = "png",
        name: str | None = None,
        ready: bool = True,
        tags: list[str] | None = None,
    ) -> Images:
        image = Images(
            slug=slug,
            ext=ext,
            name=name or slug.replace("-", " ").title(),
            added_at=added_at,
            size_bytes=size_bytes,
            width_px=width_px,
            height_px=height_px,
            sha256=calculate_sha256(slug.encode()),
            ready=ready,
        )
        async with database.session(SessionMode.WRITE) as session:
            session.add(image)
            await session.flush()
            session.add_all([ImageTags(image_slug=slug, tag_slug=tag) for tag in tags or []])
            await session.commit()
        return image

    return _add_image


@pytest.fixture
def add_tag(database: Database) -> Callable[..., Awaitable[Tags]]:
    """
    Insert a tag, creating its kind when missing.

    Usage:
        await add_tag("subject/nature", "Nature")
    """

    async def _add_tag(
        slug: str, name: str | None = None, *, system: bool = False, system_only_kind: bool = False
    ) -> Tags:
        kind_slug, value = slug.split("/")
        tag = Tags(slug=slug, name=name or value.title(), kind_slug=kind_slug, system=system)
        async with database.session(SessionMode.WRITE) as session:
            if await session.get(TagKinds, kind_slug) is None:
                session.add(
                    TagKinds(slug=kind_slug, name=kind_slug.title(), system_only=system_only_kind)
                )
                await session.flush()
            session.add(tag)
            await session.commit()
        return tag

    return _add_tag


@pytest.fixture
async def user_tags(add_tag) -> list[str]:
    """A small user vocabulary across two kinds."""
    slugs = ["subject/nature", "subject/city", "subject/space", "color/blue", "color/red"]
    for slug in slugs:
        await add_tag(slug)
    return slugs


@pytest.fixture
def links_snapshot(database: Database) -> Callable[[], Awaitable[set[tuple[str, str]]]]:
    """Read all (image_slug, tag_slug) associations currently stored."""

    async def _snapshot() -> set[tuple[str, str]]:
        async with database.session(SessionMode.READ) as session:
            result = await session.execute(select(ImageTags.image_slug, ImageTags.tag_slug))
            return {(row[0], row[1]) for row in result.all()}

    return _snapshot


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    """Factory for encoded test images: image_bytes(3840, 2160, fmt="JPEG")."""
    return make_image_bytes


@pytest.fixture
def miss_existing_rows(monkeypatch: pytest.MonkeyPatch) -> Callable[[DbSession, type], None]:
    """
    Make session.get miss rows of one model.

    Simulates a concurrent writer committing between a service's existence
    check and its insert.
    """

    def _miss(session: DbSession, model: type) -> None:
        real_get = session.get

        async def get(target, key):
            if target is model:
                return None
            return await real_get(target, key)

        monkeypatch.setattr(session, "get", get)

    return _miss
