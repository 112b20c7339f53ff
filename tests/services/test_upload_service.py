"""Tests for the upload orchestrator."""

import httpx
import pytest
from sqlalchemy import select

from gallery.config import SessionMode
from gallery.core.database import Database
from gallery.core.errors import (
    AlreadyExists,
    MissingSystemTagDefinition,
    SourceFetchError,
    SystemTagNotEditable,
    ValidationError,
)
from gallery.models import Images, Tags
from gallery.services.image_processing import calculate_sha256
from gallery.services.images import get_image_by_slug
from gallery.services import upload as upload_module
from gallery.services.storage import LocalBlobStore
from gallery.services.upload import (
    FileSource,
    UploadRequest,
    UrlSource,
    parse_upload_input,
    upload_image,
)


class FailingBlobStore(LocalBlobStore):
    """Stores objects, then fails the way a flaky remote store would."""

    def __init__(self, root, fail_put=False, fail_delete=False) -> None:
        super().__init__(root)
        self.fail_put = fail_put
        self.fail_delete = fail_delete

    async def put(self, key, data, content_type=None) -> None:
        await super().put(key, data, content_type)
        if self.fail_put:
            raise OSError("store unavailable")

    async def delete(self, key) -> None:
        if self.fail_delete:
            raise OSError("delete refused")
        await super().delete(key)


async def _all_images(database: Database) -> list[str]:
    async with database.session(SessionMode.READ) as session:
        return await session.scalars(select(Images.slug))


@pytest.mark.unit
class TestParseUploadInput:
    def test_normalizes_fields(self) -> None:
        request = parse_upload_input(
            "file",
            "  Sunset ",
            " Sunset-Sky ",
            ["Subject/Nature", " ", "subject/nature", "color/red"],
            file_data=b"x",
            filename="sunset.png",
        )
        assert request.name == "Sunset"
        assert request.slug == "sunset-sky"
        assert request.tag_slugs == ["subject/nature", "color/red"]
        assert request.source_type == "file"

    def test_url_source(self) -> None:
        request = parse_upload_input("url", "Sky", "sky", url=" https://example.com/sky.jpg ")
        assert request.source == UrlSource(url="https://example.com/sky.jpg")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"source_type": "ftp"},
            {"source_type": "file"},
            {"source_type": "url"},
            {"source_type": "url", "url": "file:///etc/passwd"},
        ],
    )
    def test_rejects_bad_sources(self, kwargs) -> None:
        with pytest.raises(ValidationError):
            parse_upload_input(name="Sky", slug="sky", **kwargs)

    def test_rejects_bad_slug(self) -> None:
        with pytest.raises(ValidationError):
            parse_upload_input("file", "Sky", "sky/blue", file_data=b"x")


@pytest.mark.integration
class TestUploadImage:
    async def test_file_upload_stores_and_tags(
        self, database: Database, blob_store, user_tags, image_bytes
    ) -> None:
        data = image_bytes(3840, 2160)
        request = UploadRequest(
            name="Nebula",
            slug="nebula",
            source=FileSource(data=data, filename="nebula.PNG", content_type="image/png"),
            tag_slugs=["subject/space"],
        )

        response = await upload_image(database, blob_store, request, clock=lambda: 1700000000.7)

        assert response.slug == "nebula"
        assert response.url.endswith("/nebula.png")
        assert response.system_tag_slugs == ["resolution/4k", "aspect-ratio/16-9"]
        assert response.tag_slugs == ["subject/space", "resolution/4k", "aspect-ratio/16-9"]
        assert await blob_store.exists("nebula.png")

        async with database.session(SessionMode.READ) as session:
            stored = await get_image_by_slug(session, "nebula")
        assert stored.image.ready is True
        assert stored.image.added_at == 1700000000
        assert stored.image.size_bytes == len(data)
        assert (stored.image.width_px, stored.image.height_px) == (3840, 2160)
        assert stored.image.sha256 == calculate_sha256(data)
        assert [tag.slug for tag in stored.tags] == [
            "aspect-ratio/16-9",
            "resolution/4k",
            "subject/space",
        ]

    async def test_url_upload_uses_mime_when_path_has_no_ext(
        self, database: Database, blob_store, http_client, remote_images, image_bytes
    ) -> None:
        remote_images["https://img.example.com/raw/42"] = httpx.Response(
            200, content=image_bytes(1920, 1200, fmt="JPEG"), headers={"content-type": "image/jpeg"}
        )
        request = parse_upload_input("url", "Remote", "remote", url="https://img.example.com/raw/42")

        response = await upload_image(database, blob_store, request, http_client)

        assert response.system_tag_slugs == ["aspect-ratio/16-10"]
        assert await blob_store.exists("remote.jpg")

    async def test_remote_4xx_is_client_fault(
        self, database: Database, blob_store, http_client
    ) -> None:
        request = parse_upload_input("url", "Gone", "gone", url="https://img.example.com/gone.png")

        with pytest.raises(SourceFetchError) as exc_info:
            await upload_image(database, blob_store, request, http_client)

        assert exc_info.value.client_fault is True
        assert exc_info.value.status == 404
        assert exc_info.value.status_code == 400
        assert await _all_images(database) == []

    async def test_remote_5xx_is_server_fault(
        self, database: Database, blob_store, http_client, remote_images
    ) -> None:
        remote_images["https://img.example.com/busy.png"] = httpx.Response(503)
        request = parse_upload_input("url", "Busy", "busy", url="https://img.example.com/busy.png")

        with pytest.raises(SourceFetchError) as exc_info:
            await upload_image(database, blob_store, request, http_client)

        assert exc_info.value.client_fault is False
        assert exc_info.value.status_code == 502

    async def test_unknown_extension(self, database: Database, blob_store, image_bytes) -> None:
        request = UploadRequest(
            name="Mystery", slug="mystery", source=FileSource(data=image_bytes(10, 10))
        )
        with pytest.raises(ValidationError, match="extension"):
            await upload_image(database, blob_store, request)

    async def test_undecodable_bytes(self, database: Database, blob_store) -> None:
        request = UploadRequest(
            name="Broken",
            slug="broken",
            source=FileSource(data=b"not an image", filename="broken.png"),
        )
        with pytest.raises(ValidationError, match="dimensions"):
            await upload_image(database, blob_store, request)
        assert await _all_images(database) == []

    async def test_system_tag_in_user_tags_rejected_before_insert(
        self, database: Database, blob_store, image_bytes
    ) -> None:
        request = UploadRequest(
            name="Sky",
            slug="sky",
            source=FileSource(data=image_bytes(10, 10), filename="sky.png"),
            tag_slugs=["resolution/4k"],
        )
        with pytest.raises(SystemTagNotEditable):
            await upload_image(database, blob_store, request)
        assert await _all_images(database) == []

    async def test_missing_system_definition_rejected_before_insert(
        self, database: Database, blob_store, image_bytes
    ) -> None:
        async with database.session(SessionMode.WRITE) as session:
            await session.execute(Tags.__table__.delete().where(Tags.slug == "aspect-ratio/16-9"))
            await session.commit()

        request = UploadRequest(
            name="Wide", slug="wide", source=FileSource(data=image_bytes(32, 18), filename="w.png")
        )
        with pytest.raises(MissingSystemTagDefinition):
            await upload_image(database, blob_store, request)
        assert await _all_images(database) == []

    async def test_duplicate_slug_keeps_existing_image(
        self, database: Database, blob_store, add_image, image_bytes
    ) -> None:
        await add_image("taken")
        request = UploadRequest(
            name="Taken", slug="taken", source=FileSource(data=image_bytes(10, 10), filename="t.png")
        )
        with pytest.raises(AlreadyExists):
            await upload_image(database, blob_store, request)
        assert await _all_images(database) == ["taken"]

    async def test_store_failure_removes_row_and_object(
        self, database: Database, tmp_path, image_bytes
    ) -> None:
        store = FailingBlobStore(tmp_path / "flaky", fail_put=True)
        request = UploadRequest(
            name="Flaky", slug="flaky", source=FileSource(data=image_bytes(10, 10), filename="f.png")
        )

        with pytest.raises(OSError, match="store unavailable"):
            await upload_image(database, store, request)

        assert await _all_images(database) == []
        assert not await store.exists("flaky.png")

    async def test_finalize_failure_cleans_up_and_cleanup_errors_do_not_mask(
        self, database: Database, tmp_path, image_bytes, monkeypatch
    ) -> None:
        store = FailingBlobStore(tmp_path / "flaky", fail_delete=True)
        request = UploadRequest(
            name="Orphan",
            slug="orphan",
            source=FileSource(data=image_bytes(10, 10), filename="o.png"),
            tag_slugs=["subject/vanished"],
        )

        # Skip the pre-insert check so finalize hits the missing tag
        async def skip_check(*args, **kwargs) -> None:
            return None

        monkeypatch.setattr(upload_module, "_check_tag_definitions", skip_check)

        with pytest.raises(Exception) as exc_info:
            await upload_image(database, store, request)

        # The foreign key failure surfaces, not the object delete failure
        assert not isinstance(exc_info.value, OSError)
        assert await _all_images(database) == []
        assert await store.exists("orphan.png")
