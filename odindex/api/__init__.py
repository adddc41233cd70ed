"""HTTP routes of the OneDrive index gateway."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from odindex.api.item import router as item_router
from odindex.api.listing import router as listing_router
from odindex.api.oauth import router as oauth_router
from odindex.api.raw import router as raw_router
from odindex.api.search import router as search_router
from odindex.api.thumbnail import router as thumbnail_router
from odindex.core.config import Settings, get_settings

API_PREFIX = "/api"

router = APIRouter()
router.include_router(listing_router, prefix=API_PREFIX)
router.include_router(raw_router, prefix=API_PREFIX)
router.include_router(item_router, prefix=API_PREFIX)
router.include_router(search_router, prefix=API_PREFIX)
router.include_router(thumbnail_router, prefix=API_PREFIX)
router.include_router(oauth_router, prefix=API_PREFIX)


@router.get(f"{API_PREFIX}/health", tags=["health"])
async def health_check(settings: Settings = Depends(get_settings)) -> dict[str, dict[str, str]]:
    """Report the service health information."""
    return {"data": {"status": "ok", "version": settings.version}}
