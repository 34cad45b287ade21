"""
Global middleware and exception mapping.
"""

from __future__ import annotations

import logging
import time

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from utils.errors import LinkedRolesError, StateMismatchError, WebhookPayloadError

logger = logging.getLogger(__name__)


def register_middleware(app: FastAPI) -> None:
    """Attach app-level middleware and error handlers."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response

    @app.exception_handler(StateMismatchError)
    async def state_mismatch(request: Request, exc: StateMismatchError):
        logger.error("State verification failed on %s: %s", request.url.path, exc)
        return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)

    @app.exception_handler(WebhookPayloadError)
    async def bad_webhook(request: Request, exc: WebhookPayloadError):
        logger.error("Rejected webhook payload: %s", exc)
        return PlainTextResponse("Bad Request", status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(httpx.HTTPError)
    async def upstream_unreachable(request: Request, exc: httpx.HTTPError):
        logger.error("%s %s — provider unreachable: %s", request.method, request.url.path, exc)
        return PlainTextResponse(
            "Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    @app.exception_handler(LinkedRolesError)
    async def linked_roles_error(request: Request, exc: LinkedRolesError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return PlainTextResponse(
            "Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
