"""Health and diagnostics routes."""

from fastapi import APIRouter

from acroform_fixup.config import get_config

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Return basic service health and the configured default fixup."""
    config = get_config()
    return {
        "status": "ok",
        "defaultFixup": config.default_fixup,
        "maxUploadMb": config.max_upload_mb,
    }
