from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import uvicorn
import logging

from .config import settings
from . import database
from .api.v1.router import api_router
from .services.exceptions import (
    PlanningServiceError,
    NotFoundError,
    LockViolationError,
    PlanningValidationError,
    StoreError,
)
from .utils.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    setup_logging(settings.log_level, settings.log_file)
    logger = logging.getLogger(__name__)
    logger.info("Starting %s application", settings.app_name)

    # Create database tables
    await database.init_models()

    yield

    # Shutdown
    logger.info("Shutting down %s application", settings.app_name)


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Sprint capacity planning and velocity projection",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)

# Service errors mapped to HTTP status codes
ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    LockViolationError: status.HTTP_409_CONFLICT,
    PlanningValidationError: status.HTTP_400_BAD_REQUEST,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(PlanningServiceError)
async def planning_error_handler(request: Request, exc: PlanningServiceError):
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    if status_code >= 500:
        logging.getLogger(__name__).error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


if __name__ == "__main__":
    uvicorn.run(
        "sprint_planner.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
