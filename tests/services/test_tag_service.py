"""Tests for tag and tag kind management."""

import pytest

from gallery.config import SessionMode
from gallery.core.database import Database
from gallery.core.errors import (
    AlreadyExists,
    KindIsSystemOnly,
    KindNotEmpty,
    KindNotFound,
    SessionStateError,
    SystemTagNotEditable,
    TagNotFound,
    ValidationError,
)
from gallery.models import ImageTags, TagKinds, Tags
from gallery.services.tags import (
    create_tag,
    create_tag_kind,
    delete_tag,
    delete_tag_kind,
    ensure_system_tag_definitions,
    list_assignable_tags,
    list_tag_kinds_for_management,
    list_tags_for_management,
    upsert_tag,
    upsert_tag_kind,
)


@pytest.mark.integration
class TestTagKinds:
    async def test_create_defaults_to_user_kind(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            kind = await create_tag_kind(session, "subject", "  Subject ")
            await session.commit()

        assert kind.slug == "subject"
        assert kind.name == "Subject"
        assert kind.system_only is False

    async def test_create_duplicate_fails(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            await create_tag_kind(session, "subject", "Subject")
            with pytest.raises(AlreadyExists, match="subject"):
                await create_tag_kind(session, "subject", "Again")

    async def test_create_requires_write_session(self, database: Database) -> None:
        async with database.session(SessionMode.READ) as session:
            with pytest.raises(SessionStateError, match="create tag kind"):
                await create_tag_kind(session, "subject", "Subject")

    async def test_invalid_input_rejected(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(ValidationError):
                await create_tag_kind(session, "Subject", "Subject")
            with pytest.raises(ValidationError):
                await create_tag_kind(session, "subject", " ")

    async def test_upsert_renames_but_keeps_system_only(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            kind = await upsert_tag_kind(session, "resolution", "Display Resolution")
            await session.commit()

        assert kind.name == "Display Resolution"
        assert kind.system_only is True

    async def test_upsert_inserts_missing(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            kind = await upsert_tag_kind(session, "mood", "Mood")
            await session.commit()
        assert kind.system_only is False

    async def test_delete_missing_kind(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(KindNotFound, match="Tag kind not found: nothing"):
                await delete_tag_kind(session, "nothing")

    async def test_delete_non_empty_kind(self, database: Database, add_tag) -> None:
        await add_tag("subject/nature")
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(
                KindNotEmpty, match="Tag kind has tags and cannot be deleted: subject"
            ):
                await delete_tag_kind(session, "subject")

    async def test_delete_empty_kind(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            await create_tag_kind(session, "mood", "Mood")
            await session.commit()

        async with database.session(SessionMode.WRITE) as session:
            await delete_tag_kind(session, "mood")
            await session.commit()

        async with database.session(SessionMode.READ) as session:
            assert await session.get(TagKinds, "mood") is None

    async def test_management_listing_ordered_by_name(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            await create_tag_kind(session, "zeta", "Alpha Kind")
            await session.commit()

        async with database.session(SessionMode.READ) as session:
            kinds = await list_tag_kinds_for_management(session)

        assert [kind.name for kind in kinds] == ["Alpha Kind", "Aspect Ratio", "Resolution"]


@pytest.mark.integration
class TestTags:
    async def test_create_derives_kind(self, database: Database, add_tag) -> None:
        await add_tag("subject/nature")
        async with database.session(SessionMode.WRITE) as session:
            tag = await create_tag(session, " Subject/City ", "City")
            await session.commit()

        assert tag.slug == "subject/city"
        assert tag.kind_slug == "subject"
        assert tag.system is False

    async def test_create_in_unknown_kind(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(KindNotFound):
                await create_tag(session, "mood/calm", "Calm")

    async def test_create_in_system_only_kind(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(KindIsSystemOnly, match="resolution"):
                await create_tag(session, "resolution/8k", "8K")

    async def test_create_duplicate(self, database: Database, add_tag) -> None:
        await add_tag("subject/nature")
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(AlreadyExists):
                await create_tag(session, "subject/nature", "Nature")

    async def test_upsert_renames_user_tag(self, database: Database, add_tag) -> None:
        await add_tag("subject/nature", "Nature")
        async with database.session(SessionMode.WRITE) as session:
            tag = await upsert_tag(session, "subject/nature", "Outdoors")
            await session.commit()
        assert tag.name == "Outdoors"

    async def test_upsert_refuses_system_tag(self, database: Database, add_tag) -> None:
        # A system tag living in a user kind is still not editable
        await add_tag("subject/featured", system=True)
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(SystemTagNotEditable):
                await upsert_tag(session, "subject/featured", "Featured")

    async def test_upsert_refuses_system_only_kind(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(KindIsSystemOnly):
                await upsert_tag(session, "resolution/4k", "Ultra HD")

    async def test_delete_cascades_associations(
        self, database: Database, add_tag, add_image, links_snapshot
    ) -> None:
        await add_tag("subject/nature")
        await add_image("sunset", tags=["subject/nature"])

        async with database.session(SessionMode.WRITE) as session:
            await delete_tag(session, "subject/nature")
            await session.commit()

        assert await links_snapshot() == set()
        async with database.session(SessionMode.READ) as session:
            assert await session.get(Tags, "subject/nature") is None

    async def test_delete_missing_and_system(self, database: Database) -> None:
        async with database.session(SessionMode.WRITE) as session:
            with pytest.raises(TagNotFound):
                await delete_tag(session, "subject/nothing")
            with pytest.raises(SystemTagNotEditable):
                await delete_tag(session, "resolution/4k")

    async def test_assignable_excludes_system_tags(self, database: Database, add_tag) -> None:
        await add_tag("subject/space", "Space")
        await add_tag("color/red", "Red")
        await add_tag("subject/city", "City")

        async with database.session(SessionMode.READ) as session:
            assignable = await list_assignable_tags(session)

        assert [tag.slug for tag in assignable] == ["color/red", "subject/city", "subject/space"]

    async def test_management_listing_includes_system_tags(self, database: Database) -> None:
        async with database.session(SessionMode.READ) as session:
            tags = await list_tags_for_management(session)

        assert [tag.slug for tag in tags] == [
            "aspect-ratio/16-10",
            "aspect-ratio/16-9",
            "resolution/4k",
        ]
        assert all(tag.system for tag in tags)


@pytest.mark.integration
async def test_seeding_is_idempotent(database: Database) -> None:
    async with database.session(SessionMode.WRITE) as session:
        assert await ensure_system_tag_definitions(session) == 0
        await session.commit()

    async with database.session(SessionMode.WRITE) as session:
        await session.execute(ImageTags.__table__.delete())
        await session.execute(Tags.__table__.delete().where(Tags.slug == "resolution/4k"))
        assert await ensure_system_tag_definitions(session) == 1
        await session.commit()


@pytest.mark.integration
class TestCreateRaces:
    """A row committed between the existence check and the insert still maps to AlreadyExists."""

    async def test_create_tag_kind(self, database: Database, miss_existing_rows) -> None:
        async with database.session(SessionMode.WRITE) as session:
            await create_tag_kind(session, "subject", "Subject")
            await session.commit()

        async with database.session(SessionMode.WRITE) as session:
            miss_existing_rows(session, TagKinds)
            with pytest.raises(AlreadyExists, match="subject"):
                await create_tag_kind(session, "subject", "Again")

    async def test_create_tag(
        self, database: Database, add_tag, miss_existing_rows
    ) -> None:
        await add_tag("subject/nature")

        async with database.session(SessionMode.WRITE) as session:
            miss_existing_rows(session, Tags)
            with pytest.raises(AlreadyExists, match="subject/nature"):
                await create_tag(session, "subject/nature", "Nature")
