"""
ComplyWatch API Application

Main FastAPI application entry point.
"""

# Load environment variables before settings are read
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from complywatch.api.dependencies import get_executor, init_services
from complywatch.api.routes import get_api_router
from complywatch.config import get_settings
from complywatch.database import close_db, init_db, is_missing_schema_error

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} API...")

    try:
        await init_db()
    except Exception as e:
        if not is_missing_schema_error(e):
            raise
        logger.warning(f"Database schema incomplete, running degraded: {e}")

    logger.info("=== Configuration ===")
    logger.info(f"  OpenAI: {'✓' if settings.openai_api_key else '✗'}")
    logger.info(f"  Anthropic: {'✓' if settings.anthropic_api_key else '✗'}")
    logger.info(f"  AI Enabled: {settings.ai_enabled}, Provider: {settings.ai_provider}")
    logger.info(f"  Internal domains: {', '.join(settings.internal_domains)}")

    init_services(settings)

    executor = get_executor()
    if settings.executor_enabled and executor is not None:
        await executor.start()

    logger.info(f"{settings.app_name} API started successfully")

    yield

    logger.info(f"Shutting down {settings.app_name} API...")
    executor = get_executor()
    if executor is not None:
        await executor.stop()
    await close_db()
    logger.info(f"{settings.app_name} API shutdown complete")


settings = get_settings()

app = FastAPI(
    title="ComplyWatch API",
    description="Cost-aware insider-risk and compliance monitoring",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(get_api_router())


@app.get("/")
async def root():
    """Root endpoint - API info."""
    return {
        "name": "ComplyWatch API",
        "version": settings.app_version,
        "docs": "/docs",
    }


# Root-level health check (for Docker/K8s)
@app.get("/health")
async def health():
    """Basic health check."""
    return {
        "status": "healthy",
        "service": "complywatch-api",
        "version": settings.app_version,
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if get_settings().debug else "An error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "complywatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
