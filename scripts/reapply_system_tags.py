#!/usr/bin/env python3
"""
Recompute system tags for every image.

Deletes each image's system-tag associations and re-derives them from the
stored dimensions. User tags are left alone. Run after changing the system tag
rules; use --seed first if the rules introduced new tags.

Usage:
    python scripts/reapply_system_tags.py [--seed] [--create-tables]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gallery.config import SessionMode, settings
from gallery.core.database import Database
from gallery.core.errors import GalleryError
from gallery.core.logging import bind_context, configure_logging, get_logger
from gallery.services.image_tags import reapply_system_tags_for_all_images
from gallery.services.tags import ensure_system_tag_definitions

logger = get_logger(__name__)


async def reapply(seed: bool = False, create_tables: bool = False) -> None:
    database = Database.from_settings(settings)
    bind_context(operation="reapply_system_tags")
    try:
        if create_tables:
            await database.create_all()

        if seed:
            async with database.session(SessionMode.WRITE) as session:
                inserted = await ensure_system_tag_definitions(session)
                await session.commit()
            print(f"Seeded {inserted} system tag definitions")

        async with database.session(SessionMode.WRITE) as session:
            result = await reapply_system_tags_for_all_images(session)
            await session.commit()
    finally:
        await database.dispose()

    print(f"Images processed:     {result.image_count}")
    print(f"Associations removed: {result.removed_count}")
    print(f"Associations added:   {result.inserted_count}")


def main():
    parser = argparse.ArgumentParser(description="Recompute system tags for all images")
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Insert missing system tag kinds and tags before reapplying",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables first (SQLite development databases)",
    )
    args = parser.parse_args()

    configure_logging()
    try:
        asyncio.run(reapply(seed=args.seed, create_tables=args.create_tables))
    except GalleryError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
