"""Logging setup and per-request access logging."""

import logging
import sys
import time

from fastapi import Request

access_logger = logging.getLogger("nimproxy.access")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging for the proxy process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    return logging.getLogger("nimproxy")


async def access_log_middleware(request: Request, call_next):
    """Log one line per request: method, path, status, duration."""
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    access_logger.info(f"{request.method} {request.url.path} {response.status_code} - {elapsed_ms:.1f} ms")
    return response
