"""FastAPI application of flusio."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.database import check_connection
from config.settings import settings
from observability.logging import setup_logging
from observability.prometheus_metrics import setup_prometheus_metrics
from services.shared.errors import NotFoundError, ValidationError

from .jobs import register_default_handlers
from .routers import accounts, collections, feeds, groups, importations, links, news, profiles, topics
from .security import setup_api_security

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file or None,
        use_json=settings.log_json,
    )
    logger.info(f"flusio {settings.app_version} started ({settings.environment})")
    yield
    logger.info("flusio stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="flusio API", version=settings.app_version, lifespan=lifespan)

    register_default_handlers()
    setup_api_security(app)
    setup_prometheus_metrics(app)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"errors": exc.errors})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/health")
    def health():
        database_ok = check_connection()
        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={
                "status": "ok" if database_ok else "error",
                "version": settings.app_version,
                "database": database_ok,
            },
        )

    for module in (accounts, collections, links, news, feeds, importations, profiles, topics, groups):
        app.include_router(module.router)

    return app


app = create_app()
