"""
FastAPI application entry point for webcms.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from webcms.api.v1.router import api_router
from webcms.config import settings
from webcms.core.exceptions import CmsError, ErrorKind
from webcms.core.logging_config import configure_logging
from webcms.database import init_db
from webcms.schemas.common import ErrorResponse
from webcms.services.asset_cleanup import get_cleanup_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    configure_logging()
    await init_db()
    yield
    # Shutdown: let detached asset cleanups finish
    await get_cleanup_scheduler().drain()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.exception_handler(CmsError)
async def cms_error_handler(request: Request, exc: CmsError) -> JSONResponse:
    """Render content engine errors as ``{detail, kind, details}``."""
    if exc.is_operational:
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)

    error_response = ErrorResponse(detail=str(exc.detail), kind=exc.kind.value, details=exc.details)
    if exc.kind == ErrorKind.DATABASE:
        # Store internals stay in the logs
        error_response = ErrorResponse(detail="Internal database error", kind=exc.kind.value)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json"),
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}


@app.get(f"{settings.API_V1_STR}/health")
async def api_health_check():
    """API health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}
