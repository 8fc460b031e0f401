"""Per-service request audit log.

Each request gets an ``X-Request-ID`` (echoed back if the client sent one) and
one line in ``<log_dir>/<service>.log``. Request bodies are never logged since
they carry passwords and tokens.
"""
from __future__ import annotations

import logging
import secrets
from pathlib import Path
from time import perf_counter

from fastapi import FastAPI, Request

from .config import get_settings

REQUEST_ID_HEADER = "X-Request-ID"


def build_audit_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"audit.{service_name}")
    if logger.handlers:
        return logger

    log_dir = Path(get_settings().log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(log_dir / f"{service_name}.log", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    audit = build_audit_logger(service_name)

    @app.middleware("http")
    async def audit_request(request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or secrets.token_hex(8)
        client = request.client.host if request.client else "unknown"
        started = perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            # The traceback is logged once, by the unhandled-error handler.
            audit.warning(
                "id=%s %s %s | status=500 | client=%s | error=%s",
                request_id,
                request.method,
                request.url.path,
                client,
                type(exc).__name__,
            )
            raise

        elapsed_ms = (perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        audit.log(
            level,
            "id=%s %s %s | status=%s | client=%s | duration=%.2fms",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            client,
            elapsed_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
