"""Logging setup and HTTP request logging middleware shared by services."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from time import perf_counter
from typing import Optional

from fastapi import FastAPI, Request

_LOG_DIR = Path(os.getenv("LOG_DIR", Path(__file__).resolve().parent.parent / "logs"))
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int = logging.INFO) -> None:
    """Console logging for engine modules (``common.*``); idempotent."""
    root = logging.getLogger("common")
    if root.handlers:
        return
    root.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    root.addHandler(handler)


def _build_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"requests.{service_name}")
    if logger.handlers:
        return logger

    _LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(_LOG_DIR / f"{service_name}.log")
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s", datefmt=_DATEFMT))
    logger.addHandler(handler)
    return logger


def add_request_logging(app: FastAPI, service_name: str) -> None:
    configure_logging()
    logger = _build_logger(service_name)

    @app.middleware("http")
    async def request_logger(request: Request, call_next):  # type: ignore[override]
        start = perf_counter()
        response = await call_next(request)
        duration_ms = (perf_counter() - start) * 1000
        client_ip: Optional[str] = None
        if request.client:
            client_ip = request.client.host
        identity = "user" if request.headers.get("Authorization") else "guest"
        logger.info(
            "%s %s | status=%s | client=%s | caller=%s | duration=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            client_ip or "unknown",
            identity,
            duration_ms,
        )
        return response
