"""NVIDIA NIM API client."""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .config import Config
from .errors import ProxyInternalError, UpstreamError

logger = logging.getLogger(__name__)


class NimClient:
    """
    Async client for the NIM chat completions API.

    Handles:
    - Buffered completions (``complete``)
    - Streamed completions (``open_stream``), closed by the caller
    - Mapping upstream failures onto UpstreamError

    One instance is shared by all requests; the underlying httpx pool is
    safe for concurrent use.
    """

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = config.nim_api_base
        self.timeout = config.timeout_seconds
        self.client = httpx.AsyncClient(
            base_url=config.nim_api_base,
            timeout=httpx.Timeout(config.timeout_seconds),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {config.nim_api_key}",
            },
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Non-streaming chat completion. Returns the decoded NIM body.

        httpx times each connect/read step separately; the whole round trip,
        body included, is additionally capped at the configured timeout.
        """
        try:
            resp = await asyncio.wait_for(
                self.client.post("/chat/completions", json=payload), self.timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.error(f"NIM request timed out: {e!r}")
            raise UpstreamError("Upstream request to NIM timed out") from e
        except httpx.RequestError as e:
            logger.error(f"NIM request failed: {e!r}")
            raise UpstreamError("Upstream request to NIM failed") from e

        if resp.status_code >= 400:
            _raise_for_upstream_status(resp, _error_message(resp))

        try:
            return resp.json()
        except ValueError as e:
            logger.error(f"NIM returned a non-JSON body: {resp.text[:500]}")
            raise ProxyInternalError("Upstream returned a malformed response body") from e

    async def open_stream(self, payload: Dict[str, Any]) -> httpx.Response:
        """
        Start a streaming chat completion.

        The returned response has not been read; the caller iterates it and
        must ``aclose()`` it. Closing before the end aborts the upstream call.
        Error statuses are read and raised here, before any SSE is sent to
        the client.
        """
        request = self.client.build_request("POST", "/chat/completions", json=payload)
        try:
            resp = await asyncio.wait_for(self.client.send(request, stream=True), self.timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.error(f"NIM streaming request timed out: {e!r}")
            raise UpstreamError("Upstream request to NIM timed out") from e
        except httpx.RequestError as e:
            logger.error(f"NIM streaming request failed: {e!r}")
            raise UpstreamError("Upstream request to NIM failed") from e

        if resp.status_code >= 400:
            try:
                await resp.aread()
            finally:
                await resp.aclose()
            _raise_for_upstream_status(resp, f"NIM error: {resp.reason_phrase}")

        return resp


def _error_message(resp: httpx.Response) -> str:
    """Best-effort error text from a NIM error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
        if body.get("detail"):
            return str(body["detail"])

    return resp.reason_phrase or "Unknown NIM error"


def _raise_for_upstream_status(resp: httpx.Response, message: str):
    """4xx is relayed with NIM's status; 5xx becomes a 502."""
    logger.error(f"NIM error: status={resp.status_code} body={resp.text[:500]}")
    if resp.status_code >= 500:
        raise UpstreamError(f"NIM service error (status {resp.status_code})", status_code=502)
    raise UpstreamError(message, status_code=resp.status_code)
