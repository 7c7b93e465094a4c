"""FastAPI app for Zalo Bridge."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from zalobridge.api.routes import router
from zalobridge.exceptions import ZaloBridgeError
from zalobridge.settings import get_settings

try:
    from importlib.metadata import version

    VERSION = version("zalobridge")
except Exception:
    VERSION = "0.0.0"

logger = logging.getLogger(__name__)


def error_envelope(status_code: int, error: str) -> JSONResponse:
    """Render the ``{ok: false, error}`` body every failure uses."""
    return JSONResponse(status_code=status_code, content={"ok": False, "error": error})


class BodySizeLimitMiddleware:
    """Reject request bodies larger than *max_body_bytes* with a 413 envelope.

    A declared ``Content-Length`` is checked up front; chunked bodies are
    counted as they are read.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes
        self.detail = f"Request body exceeds {max_body_bytes} bytes"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = dict(scope["headers"]).get(b"content-length", b"")
        if length.isdigit() and int(length) > self.max_body_bytes:
            await error_envelope(413, self.detail)(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    # Raised inside body parsing, so the app renders it as an envelope.
                    raise HTTPException(status_code=413, detail=self.detail)
            return message

        await self.app(scope, limited_receive, send)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    yield
    from zalobridge.browser.session import get_browser_session

    await get_browser_session().close()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()

    application = FastAPI(
        title="Zalo Bridge",
        description="Send Zalo Web messages through a headless browser.",
        version=VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.api.max_body_bytes)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(ZaloBridgeError)
    async def handle_bridge_error(request: Request, exc: ZaloBridgeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return error_envelope(exc.status_code, str(exc))

    @application.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_envelope(exc.status_code, str(exc.detail))

    @application.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_envelope(400, "target & message required")

    @application.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s failed", request.method, request.url.path)
        return error_envelope(500, str(exc) or type(exc).__name__)

    application.include_router(router)
    return application


app = create_app()
