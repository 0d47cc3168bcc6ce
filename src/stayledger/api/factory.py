"""FastAPI application factory."""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from stayledger.domain.allocations import AllocationStoreError
from stayledger.observability.correlation import (
    CORRELATION_ID_HEADER,
    correlation_scope,
)
from stayledger.observability.logging import configure_logging, get_logger

from .routes import calendar

logger = get_logger(__name__)

health_router = APIRouter()


@health_router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


def create_app() -> FastAPI:
    """Create the FastAPI app with calendar routes, correlation IDs and JSON logs."""
    configure_logging()

    app = FastAPI(
        title="Stayledger",
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response

    @app.exception_handler(AllocationStoreError)
    async def store_error_handler(request: Request, exc: AllocationStoreError) -> JSONResponse:
        logger.error(
            "allocation store failure",
            extra={
                "extra_fields": {
                    "path": request.url.path,
                    "error": type(exc.__cause__ or exc).__name__,
                }
            },
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Calendar store unavailable, try again"},
        )

    app.include_router(health_router)
    app.include_router(calendar.router)

    return app
