"""
ComplyWatch Health API Routes

Health check and readiness endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select

from complywatch.api.dependencies import get_executor, get_settings, get_tiered_classifier
from complywatch.database import SecurityPolicy, get_session_factory, is_missing_schema_error
from complywatch.utils.helpers import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(settings = Depends(get_settings)):
    """Basic health check."""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "complywatch-api",
        "version": settings.app_version,
    }


@router.get("/ready")
async def readiness_check(classifier = Depends(get_tiered_classifier)):
    """
    Readiness check - verifies the database schema, LLM configuration and
    the background executor.
    """
    checks = {}
    all_ready = True

    try:
        async with get_session_factory()() as session:
            await session.execute(select(SecurityPolicy.id).limit(1))
        checks["database"] = {"status": "ready"}
    except Exception as e:
        all_ready = False
        status = "schema_missing" if is_missing_schema_error(e) else "error"
        checks["database"] = {"status": status, "error": str(e)}

    ai = classifier.ai_classifier
    if ai is not None and ai.is_configured():
        checks["ai"] = {"status": "ready", "providers": ai.get_configured_providers()}
    else:
        checks["ai"] = {"status": "not_configured"}

    executor = get_executor()
    checks["executor"] = {"status": "running" if executor and executor.is_running else "stopped"}

    return {
        "status": "ready" if all_ready else "degraded",
        "timestamp": utc_now().isoformat(),
        "checks": checks,
    }
