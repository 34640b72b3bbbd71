"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from uuid import uuid4

from ectd_packager.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ectd_packager.packaging.errors import NoActiveTemplateError, PackagingError, StudyNotFoundError
from ectd_packager.routers import health, packages, validation
from ectd_packager.services.storage import get_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Make sure the upload and export roots exist before serving."""
    current = get_settings()
    get_storage().ensure_dirs()
    Path(current.exports_dir).mkdir(parents=True, exist_ok=True)
    logger.info(f"Upload store at {current.upload_dir}, exports at {current.exports_dir}")
    yield


app = FastAPI(
    title="eCTD Packager API",
    description="eCTD submission package assembly and compliance checks",
    version="0.1.0",
    redirect_slashes=False,
    lifespan=lifespan,
)

# CORS for frontend
origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]

# Add production frontend URL if configured (handle www and non-www)
if settings.frontend_url:
    origins.append(settings.frontend_url)
    if "://www." in settings.frontend_url:
        origins.append(settings.frontend_url.replace("://www.", "://"))
    elif "://" in settings.frontend_url:
        origins.append(settings.frontend_url.replace("://", "://www."))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(packages.router)
app.include_router(validation.router)


# Global exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent format."""
    error_id = str(uuid4())

    if exc.status_code == 404:
        error_type = "not_found"
    elif exc.status_code in (400, 422):
        error_type = "validation"
    else:
        error_type = "server_error"

    # Dict details (failed exports) carry their own fields
    if isinstance(exc.detail, dict):
        content = {"error_type": error_type, **exc.detail, "error_id": error_id}
    else:
        content = {
            "detail": str(exc.detail),
            "error_type": error_type,
            "error_id": error_id,
        }

    logger.warning(
        f"HTTP {exc.status_code} [{error_id}]: {exc.detail} - {request.method} {request.url.path}"
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with field details."""
    error_id = str(uuid4())

    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"]})

    logger.warning(
        f"Validation error [{error_id}]: {errors} - {request.method} {request.url.path}"
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "error_type": "validation",
            "error_id": error_id,
            "errors": errors,
        },
    )


@app.exception_handler(PackagingError)
async def packaging_exception_handler(request: Request, exc: PackagingError):
    """Structural packaging failures that escaped a router."""
    error_id = str(uuid4())

    if isinstance(exc, StudyNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
        error_type = "not_found"
    elif isinstance(exc, NoActiveTemplateError):
        status_code = status.HTTP_400_BAD_REQUEST
        error_type = "validation"
    else:
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        error_type = "packaging"

    logger.warning(f"Packaging error [{error_id}]: {exc} - {request.method} {request.url.path}")

    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": error_type, "error_id": error_id},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unhandled exceptions."""
    error_id = str(uuid4())

    logger.error(
        f"Unhandled exception [{error_id}]: {type(exc).__name__}: {exc} - "
        f"{request.method} {request.url.path}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error_type": "server_error",
            "error_id": error_id,
        },
    )
