"""Translate engine and persistence errors into JSON responses."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import BookingEngineError

logger = logging.getLogger(__name__)


def engine_error_handler(_: Request, exc: BookingEngineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


def persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Persistence failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def apply_error_handlers(app: FastAPI) -> None:
    """Attach the domain and persistence exception handlers to an app."""

    app.add_exception_handler(BookingEngineError, engine_error_handler)
    app.add_exception_handler(SQLAlchemyError, persistence_error_handler)
