# backoffice/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backoffice.api.cron import router as cron_router
from backoffice.api.customers import router as customers_router
from backoffice.api.external import router as external_router
from backoffice.api.invoices import router as invoices_router
from backoffice.api.stats import router as stats_router
from backoffice.config import Settings, get_settings
from backoffice.db.engine import get_engine
from backoffice.db.schema import metadata
from backoffice.errors import BackofficeError, StorageError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def handle_backoffice_error(request: Request, exc: BackofficeError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
        for err in exc.errors()
    ]
    message = "; ".join(
        f"{'.'.join(d['loc'][1:]) or d['loc'][0]}: {d['msg']}" for d in details
    )
    return _error_response(400, message or "Invalid request", details=details)


async def handle_storage_failure(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("%s %s hit a storage error", request.method, request.url.path)
    return _error_response(500, "Something went wrong")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.CREATE_SCHEMA:
            metadata.create_all(app.state.engine)
        yield
        app.state.engine.dispose()

    app = FastAPI(
        title="Invoice Back-Office API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = get_engine(settings.DATABASE_URL, echo=settings.ECHO_SQL)

    app.add_exception_handler(BackofficeError, handle_backoffice_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(SQLAlchemyError, handle_storage_failure)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(customers_router)
    app.include_router(invoices_router)
    app.include_router(external_router)
    app.include_router(cron_router)
    app.include_router(stats_router)

    return app


app = create_app()
