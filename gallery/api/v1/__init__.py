"""
API v1 Router
"""

from fastapi import APIRouter

from gallery.api.v1 import images, tag_kinds, tags

router = APIRouter()

router.include_router(images.router)
router.include_router(tag_kinds.router)
router.include_router(tags.router)

__all__ = ["router"]
