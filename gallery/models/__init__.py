"""
Database schema models.

All tables are SQLModel classes. For schema changes:
1. Edit the appropriate model file in gallery/models/
2. Create an Alembic migration to reflect the changes
"""

from gallery.models.image import Images
from gallery.models.image_tag import ImageTags
from gallery.models.tag import Tags
from gallery.models.tag_kind import TagKinds

__all__ = [
    "Images",
    "ImageTags",
    "TagKinds",
    "Tags",
]
