"""FastAPI entry point: application factory, error mapping, startup hooks."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from acadigo.api import router as api_router
from acadigo.config import Settings, get_settings
from acadigo.db import Base, engine, session_scope
from acadigo.errors import AppError, UpstreamFailure
from acadigo.models import UserRole
from acadigo.services.auth import get_user_by_email
from acadigo.services.users import create_user
from acadigo.utils.logger import setup_logging
from acadigo.utils.storage import ensure_directory

logger = logging.getLogger(__name__)


def bootstrap_admin(settings: Settings) -> None:
    """Create the configured admin account if it does not exist yet."""
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        return
    with session_scope() as db:
        if get_user_by_email(db, settings.bootstrap_admin_email):
            return
        create_user(
            db,
            name=settings.bootstrap_admin_name,
            email=settings.bootstrap_admin_email,
            password=settings.bootstrap_admin_password,
            role=UserRole.ADMIN,
        )
        logger.info("Bootstrap admin %s created", settings.bootstrap_admin_email)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        message = exc.message
        if isinstance(exc, UpstreamFailure) and not settings.is_development:
            message = UpstreamFailure.default_message
        return JSONResponse(status_code=exc.status_code, content={"message": message})

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", [])[1:])
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": message, "errors": errors},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"message": "Server error"}
        if settings.is_development:
            content["error"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def create_app() -> FastAPI:
    """Application factory, also used by the tests."""

    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(title="Acadigo LMS API", version="0.1.0")
    register_exception_handlers(app, settings)
    app.include_router(api_router)

    if settings.storage_backend == "local":
        ensure_directory(settings.storage_dir)
        app.mount(
            settings.public_file_base_url,
            StaticFiles(directory=settings.storage_dir, check_dir=False),
            name="files",
        )

    @app.on_event("startup")
    def init_models() -> None:
        """Create missing tables, then the bootstrap admin."""

        Base.metadata.create_all(bind=engine)
        bootstrap_admin(settings)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()
