"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from secure_uploader import __version__
from secure_uploader.config import Settings, settings as default_settings
from secure_uploader.database import Database
from secure_uploader.errors import StoreUnavailable, UploaderError, ValidationError
from secure_uploader.logging_config import setup_logging
from secure_uploader.mongo import MongoConnection
from secure_uploader.repositories.file_records import FileRecordRepository
from secure_uploader.routes.files import router as files_router
from secure_uploader.routes.health import router as health_router
from secure_uploader.schemas.file import ErrorResponse
from secure_uploader.services.blob_store import create_blob_store
from secure_uploader.services.file_service import FileService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, release store connections on shutdown."""
    try:
        await app.state.database.create_all()
        logger.info("Metadata store ready")
    except Exception as e:
        # Keep serving; /health reports the store as disconnected.
        logger.error("Database initialization failed: %s", e)

    yield

    await app.state.blob_store.close()
    await app.state.database.dispose()


def _error_body(settings: Settings, message: str, detail: Optional[str] = None, fields=None) -> dict:
    body = ErrorResponse(
        message=message,
        error=None if settings.is_production else detail,
    ).model_dump(by_alias=True, exclude_none=True)
    if fields:
        body["fields"] = fields
    return body


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(UploaderError)
    async def uploader_error_handler(request: Request, exc: UploaderError):
        if isinstance(exc, StoreUnavailable):
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
            body = _error_body(settings, "Storage temporarily unavailable. Please try again.", exc.message)
        elif isinstance(exc, ValidationError):
            body = _error_body(settings, exc.message, exc.message, exc.fields)
        else:
            body = _error_body(settings, exc.message, exc.message)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=_error_body(settings, "Invalid request", str(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=_error_body(settings, str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("%s on %s (500): %s", type(exc).__name__, request.url.path, exc, exc_info=exc)
        message = "Internal server error" if settings.is_production else str(exc)
        return JSONResponse(status_code=500, content=_error_body(settings, message, str(exc)))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(
        title="SecureIDUploader API",
        version=__version__,
        description="Upload, list, download and delete identity documents.",
        lifespan=lifespan,
    )

    # Store handles are built here but only connect on first use.
    database = Database(settings)
    mongo = MongoConnection(settings) if settings.BLOB_STORAGE_TYPE == "gridfs" else None
    blob_store = create_blob_store(settings, mongo)
    file_records = FileRecordRepository(database)

    app.state.settings = settings
    app.state.database = database
    app.state.blob_store = blob_store
    app.state.file_records = file_records
    app.state.file_service = FileService(file_records, blob_store, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app, settings)

    app.include_router(health_router, prefix=settings.API_PREFIX)
    app.include_router(files_router, prefix=settings.API_PREFIX)

    logger.info(
        "SecureIDUploader configured: blob store=%s, max file size=%dMB",
        settings.BLOB_STORAGE_TYPE, settings.MAX_FILE_SIZE // (1024 * 1024),
    )
    return app
