from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from patchrss.errors import PatchRSSError
from patchrss.routers import feeds
from patchrss.routers.feeds import CACHE_HEADERS
from patchrss.settings import settings

_log = logging.getLogger(__name__)


def _text_response(message: str, status_code: int) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status_code, headers=dict(CACHE_HEADERS))


async def _handle_patchrss_error(_request: Request, exc: PatchRSSError) -> PlainTextResponse:
    if exc.status_code >= 500:
        _log.warning("%s: %s", type(exc).__name__, getattr(exc, "detail", None) or exc.message)
    return _text_response(exc.message, exc.status_code)


async def _handle_unexpected_error(request: Request, exc: Exception) -> PlainTextResponse:
    _log.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return _text_response("Internal Server Error", 500)


def create_app() -> FastAPI:
    app = FastAPI(
        title="patchrss",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.add_exception_handler(PatchRSSError, _handle_patchrss_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    @app.middleware("http")
    async def request_timeout(request: Request, call_next):
        timeout = max(0.001, settings.request_timeout_msec / 1000)
        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            _log.warning("Request to %s timed out after %.1fs", request.url.path, timeout)
            return _text_response("request timed out", 504)

    app.include_router(feeds.router)

    return app


app = create_app()
