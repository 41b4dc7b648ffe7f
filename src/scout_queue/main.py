"""Main entry point for the Scout Queue application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from scout_queue.api.v1 import product_votes_router, system_router
from scout_queue.core.settings import settings
from scout_queue.services.errors import VoteServiceError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Scout Queue API",
    description="Weighted community voting that decides which products get lab-tested next",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(product_votes_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(VoteServiceError)
async def vote_service_error_handler(request: Request, exc: VoteServiceError) -> JSONResponse:
    """Render service errors as ``{"detail", "reason"}`` bodies."""
    if exc.retryable:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.reason)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Scout Queue API",
        "version": settings.app_version,
        "description": "Weighted community voting that decides which products get lab-tested next",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("scout_queue.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
