"""
Health check endpoint.
"""
from fastapi import APIRouter

from taskrank import __version__
from taskrank.core.config import get_settings
from taskrank.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def health_check():
    """
    Basic health check endpoint.

    Also reports whether the AI stages are enabled and which model they use.
    """
    settings = get_settings()
    return {
        "status": "ok",
        "message": "API is running",
        "version": __version__,
        "ai_enabled": settings.ai.enabled,
        "ai_model": settings.ai.model if settings.ai.enabled else None,
    }
