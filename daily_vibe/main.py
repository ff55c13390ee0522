"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from daily_vibe import __version__
from daily_vibe.api.auth import router as auth_router
from daily_vibe.api.events import router as events_router
from daily_vibe.api.files import router as files_router
from daily_vibe.api.system import router as system_router
from daily_vibe.api.tasks import router as tasks_router
from daily_vibe.api.users import router as users_router
from daily_vibe.config import get_settings
from daily_vibe.db import get_database
from daily_vibe.errors import AppError, StorageUnavailableError, classify_database_error
from daily_vibe.logging_config import configure_logging

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the schema on startup. A missing database does not stop the server."""
    configure_logging(settings.LOG_LEVEL)
    database = app.dependency_overrides.get(get_database, get_database)()
    try:
        database.initialize()
    except StorageUnavailableError:
        logger.error(
            "Starting without a database; data endpoints will answer 503",
            extra={"backend": database.backend},
        )
    yield
    database.close()


app = FastAPI(
    title="Daily Vibe API",
    description="Task and calendar backend with optional authentication",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(request: Request, error: AppError, exc: Exception | None = None) -> JSONResponse:
    context = {
        "endpoint": request.url.path,
        "method": request.method,
        "error_kind": error.kind,
    }
    if error.status_code >= 500:
        logger.error(error.message, extra=context, exc_info=exc)
    else:
        logger.warning(error.message, extra=context)
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.message},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_response(request, exc)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    return _error_response(request, classify_database_error(exc), exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(request, AppError(), exc)


# Register routers
app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(events_router)
app.include_router(files_router)
app.include_router(users_router)
app.include_router(system_router)

# Mounted last so API routes take precedence
if Path(settings.STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")
