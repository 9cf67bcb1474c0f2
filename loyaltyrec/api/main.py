"""FastAPI application main module.

This module defines the FastAPI application instance, exception handlers and
core endpoints of the LoyaltyRec recommendation service, and serves as the
entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from loyaltyrec import __version__
from loyaltyrec.api.exceptions import LoyaltyRecException
from loyaltyrec.api.logging_config import RequestLoggingMiddleware, setup_logging
from loyaltyrec.api.metrics import metrics_service
from loyaltyrec.api.routes import recommendations
from loyaltyrec.config import get_settings
from loyaltyrec.storage.database import init_db

# Configure module logger
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and make sure the schema exists on start-up."""
    settings = get_settings()
    setup_logging(settings.log_level)
    init_db()
    logger.info("LoyaltyRec API started", extra={"version": __version__})
    yield


# Create FastAPI application instance
app = FastAPI(
    title="LoyaltyRec API",
    description="Frequently-bought-together recommendations for store owners",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(recommendations.router)


@app.exception_handler(LoyaltyRecException)
async def loyaltyrec_exception_handler(
    request: Request, exc: LoyaltyRecException
) -> JSONResponse:
    """Render LoyaltyRec errors with a consistent structure."""
    logger.error(
        exc.message,
        extra={
            "path": str(request.url.path),
            "status_code": exc.status_code,
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation errors with the same structure."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Invalid request parameters",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors reduced to JSON-safe location/message pairs."""
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Returns:
        Dictionary with status key set to "ok".

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/metrics")
def get_metrics() -> Dict[str, Any]:
    """Recompute counters and latency per strategy."""
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "loyaltyrec.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
