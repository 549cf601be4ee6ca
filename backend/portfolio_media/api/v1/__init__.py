"""
Portfolio Media API v1 Router Aggregator.

Combines the v1 endpoint routers into a single APIRouter that the
application mounts under ``/api/v1``.

Router Structure:
    - /media: image and video uploads, single and bulk deletes
"""

import logging

from fastapi import APIRouter

from portfolio_media.api.v1.media import router as media_router


logger = logging.getLogger(__name__)

api_router = APIRouter()

api_router.include_router(
    media_router,
    prefix="/media",
    tags=["media"],
)

__all__ = ["api_router"]
