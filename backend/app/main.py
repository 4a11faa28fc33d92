from fastapi import FastAPI
from loguru import logger

from backend.app.config import settings
from backend.app.api.v1.router import api_v1_router
from backend.app.upstream.connection import (
    initialize_content_client,
    close_content_client,
)

app = FastAPI(title="Tour Content Gateway")
logger.info("Main FastAPI application instance created.")


@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI Event: Application startup initiated...")
    client = initialize_content_client()
    if not client.base_url:
        logger.warning(
            "Upstream API URL is not configured; content requests will fail until it is set."
        )
    logger.info("FastAPI Event: ContentClient ready. Application startup complete.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI Event: Application shutdown initiated...")
    await close_content_client()
    logger.info("FastAPI Event: ContentClient closed. Application shutdown complete.")


# --- V1 API router ---
app.include_router(api_v1_router, prefix="/api/v1")


# --- Root and Health Endpoints ---
@app.get("/")
async def root():
    logger.debug("API GET / (FastAPI root) called.")
    return {
        "message": "Tour Content Gateway",
        "api_docs_url": "/docs",
        "redoc_url": "/redoc",
        "health_check": "/health",
        "default_language": settings.upstream.default_language,
    }


@app.get("/health", tags=["Health Check"])
async def health_check():
    return {"status": "ok", "message": "API is healthy"}
