"""
ComplyWatch API Routes

All API route modules.
"""

from fastapi import APIRouter

from .classify import router as classify_router
from .health import router as health_router
from .policies import router as policies_router


def get_api_router() -> APIRouter:
    """Create and return the main API router."""
    api_router = APIRouter(prefix="/api/v1")

    api_router.include_router(classify_router)
    api_router.include_router(policies_router)
    api_router.include_router(health_router)

    return api_router


__all__ = [
    'get_api_router',
    'classify_router',
    'health_router',
    'policies_router',
]
