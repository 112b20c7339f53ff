"""create gallery schema

Revision ID: 3f9c2a71d4e8
Revises:
Create Date: 2026-10-18 10:12:44.218305

"""
from typing import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3f9c2a71d4e8'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


SYSTEM_TAG_KINDS = [
    {'slug': 'resolution', 'name': 'Resolution', 'system_only': True},
    {'slug': 'aspect-ratio', 'name': 'Aspect Ratio', 'system_only': True},
]

SYSTEM_TAGS = [
    {'slug': 'resolution/4k', 'name': '4K', 'kind_slug': 'resolution', 'system': True},
    {'slug': 'aspect-ratio/16-9', 'name': '16:9', 'kind_slug': 'aspect-ratio', 'system': True},
    {'slug': 'aspect-ratio/16-10', 'name': '16:10', 'kind_slug': 'aspect-ratio', 'system': True},
]


def upgrade() -> None:
    """Create images, tag_kinds, tags and image_tags; seed the system tag vocabulary.

    The seeded rows mirror gallery.services.system_tags at the time of writing.
    Later rule additions are seeded with scripts/reapply_system_tags.py --seed.
    """
    op.create_table(
        'images',
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('ext', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('added_at', sa.Integer(), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('width_px', sa.Integer(), nullable=False),
        sa.Column('height_px', sa.Integer(), nullable=False),
        sa.Column('sha256', sa.String(length=44), nullable=False),
        sa.Column('ready', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('slug'),
    )
    op.create_index(
        'idx_images_ready_added_at_slug', 'images', ['ready', 'added_at', 'slug'], unique=False
    )

    tag_kinds = op.create_table(
        'tag_kinds',
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('system_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('slug'),
    )

    tags = op.create_table(
        'tags',
        sa.Column('slug', sa.String(length=130), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('kind_slug', sa.String(length=64), nullable=False),
        sa.Column('system', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(
            ['kind_slug'],
            ['tag_kinds.slug'],
            name='fk_tags_kind_slug',
            ondelete='RESTRICT',
            onupdate='CASCADE',
        ),
        sa.PrimaryKeyConstraint('slug'),
    )
    op.create_index('idx_tags_kind_slug_name', 'tags', ['kind_slug', 'name'], unique=False)

    op.create_table(
        'image_tags',
        sa.Column('image_slug', sa.String(length=120), nullable=False),
        sa.Column('tag_slug', sa.String(length=130), nullable=False),
        sa.ForeignKeyConstraint(
            ['image_slug'],
            ['images.slug'],
            name='fk_image_tags_image_slug',
            ondelete='CASCADE',
            onupdate='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['tag_slug'],
            ['tags.slug'],
            name='fk_image_tags_tag_slug',
            ondelete='CASCADE',
            onupdate='CASCADE',
        ),
        sa.PrimaryKeyConstraint('image_slug', 'tag_slug'),
    )
    op.create_index('idx_image_tags_tag_slug', 'image_tags', ['tag_slug'], unique=False)

    op.bulk_insert(tag_kinds, SYSTEM_TAG_KINDS)
    op.bulk_insert(tags, SYSTEM_TAGS)


def downgrade() -> None:
    """Drop all gallery tables."""
    op.drop_index('idx_image_tags_tag_slug', table_name='image_tags')
    op.drop_table('image_tags')
    op.drop_index('idx_tags_kind_slug_name', table_name='tags')
    op.drop_table('tags')
    op.drop_table('tag_kinds')
    op.drop_index('idx_images_ready_added_at_slug', table_name='images')
    op.drop_table('images')
