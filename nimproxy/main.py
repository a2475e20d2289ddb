"""
NIM Proxy - Main Entry Point

OpenAI-compatible API server that forwards chat completions to NVIDIA NIM,
translating model ids and optionally surfacing reasoning as <think> tags.

Usage:
    python -m nimproxy.main

Environment Variables:
    NIM_API_KEY            - NVIDIA API key (required)
    NIM_API_BASE           - NIM API base URL (default: https://integrate.api.nvidia.com/v1)
    HOST                   - Server host (default: 0.0.0.0)
    PORT                   - Server port (default: 3000)
    SHOW_REASONING         - Wrap reasoning in <think> tags (default: false)
    ENABLE_THINKING_MODE   - Ask NIM to produce reasoning (default: false)
    DEFAULT_FALLBACK_MODEL - Model used when nothing else matches
    NIM_TIMEOUT_MS         - Upstream timeout in ms (default: 45000)
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api import router as api_router
from .config import Config, load_config
from .errors import ConfigError, PayloadTooLargeError, ProxyError, error_body
from .logging_config import access_log_middleware, setup_logging
from .nim_client import NimClient

logger = logging.getLogger(__name__)

SERVICE_NAME = "OpenAI → NVIDIA NIM Proxy"


def create_app(config: Config, nim: Optional[NimClient] = None) -> FastAPI:
    """
    Build the FastAPI app for a given config.

    Args:
        config: Immutable proxy configuration
        nim: NIM client to use; one is created from ``config`` when omitted
    """
    nim = nim or NimClient(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown lifecycle."""

        # Startup
        logger.info("=" * 60)
        logger.info(f"{SERVICE_NAME} starting")
        logger.info("=" * 60)
        logger.info(f"NIM base: {config.nim_api_base}")
        logger.info(f"Reasoning display: {'ENABLED' if config.show_reasoning else 'DISABLED'}")
        logger.info(f"Thinking mode: {'ENABLED' if config.enable_thinking_mode else 'DISABLED'}")
        logger.info(f"Default fallback model: {config.default_model}")
        logger.info(f"Upstream timeout: {config.timeout_seconds:g}s")
        logger.info("-" * 60)
        logger.info(f"Server ready at http://{config.host}:{config.port}")
        logger.info(f"Health check: http://{config.host}:{config.port}/health")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("Shutting down...")
        await nim.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="NIM Proxy",
        description="OpenAI-compatible chat completions proxied to NVIDIA NIM.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.nim = nim

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        """Reject oversized bodies from Content-Length before reading them."""
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > config.max_body_bytes:
            err = PayloadTooLargeError(f"Request body exceeds {config.max_body_bytes} bytes.")
            return JSONResponse(err.to_dict(), status_code=err.status_code)
        return await call_next(request)

    app.middleware("http")(access_log_middleware)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    app.include_router(api_router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "reasoning_display": config.show_reasoning,
            "thinking_mode": config.enable_thinking_mode,
            "nim_base": config.nim_api_base,
        }

    return app


def _register_error_handlers(app: FastAPI):
    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.error_type}: {exc.message}")
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and unsupported methods look the same to clients
        if exc.status_code in (404, 405):
            return JSONResponse(
                error_body(f"Endpoint {request.url.path} not found", "invalid_request_error", 404),
                status_code=404,
            )
        return JSONResponse(
            error_body(str(exc.detail), "invalid_request_error", exc.status_code),
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Proxy error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            error_body("Internal server error", "proxy_error", 500),
            status_code=500,
        )


def main():
    """Run the proxy server."""
    load_dotenv()
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(e.message)
        sys.exit(1)

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
