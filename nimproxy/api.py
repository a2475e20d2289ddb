"""
OpenAI-compatible API endpoints backed by NVIDIA NIM.

Provides /v1/chat/completions and /v1/models. Chat requests are validated,
their model id translated, forwarded to NIM, and the reply reshaped so the
client only ever sees the model id it asked for.
"""

import json
import logging
import time
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from .config import Config
from .errors import ConfigError, InvalidRequestError, PayloadTooLargeError
from .models import ModelInfo
from .nim_client import NimClient
from .normalizer import build_upstream_payload, normalize_request
from .resolver import list_client_models, resolve_model
from .transcoder import StreamTranscoder, transcode_completion

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/v1/models")
async def list_models():
    """
    List available models (OpenAI-compatible).

    Returns the client-facing ids of the static model mapping.
    """
    created = int(time.time())
    models = [
        ModelInfo(id=model_id, created=created).model_dump()
        for model_id in list_client_models()
    ]

    return {"object": "list", "data": models}


@router.post("/v1/chat/completions")
async def chat_completions(request: Request):
    """
    OpenAI-compatible chat completions proxied to NIM.

    Returns a JSON completion, or an SSE stream when ``stream`` is true.
    """
    config: Config = request.app.state.config
    nim: NimClient = request.app.state.nim

    raw = await read_body(request, config.max_body_bytes)

    try:
        body = json.loads(raw, parse_constant=_reject_constant)
    except ValueError as e:
        raise InvalidRequestError("Request body is not valid JSON.") from e

    chat = normalize_request(body, config)

    if not config.nim_api_key:
        raise ConfigError("NIM_API_KEY is not configured on the proxy.")

    nim_model = resolve_model(chat.model, config.default_model)
    payload = build_upstream_payload(chat, nim_model, config)

    logger.info(f"Chat completion: model={chat.model} -> {nim_model}, "
                f"messages={len(chat.messages)}, stream={chat.stream}")

    if chat.stream:
        upstream = await nim.open_stream(payload)
        transcoder = StreamTranscoder(chat.model, config.show_reasoning)
        return StreamingResponse(
            relay_stream(request, upstream, transcoder),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    nim_body = await nim.complete(payload)
    return transcode_completion(nim_body, chat.model, config)


async def relay_stream(
    request: Request,
    upstream: httpx.Response,
    transcoder: StreamTranscoder,
) -> AsyncIterator[str]:
    """
    Relay NIM SSE to the client through the transcoder.

    Stops reading as soon as the client goes away; closing the upstream
    response in ``finally`` aborts the NIM request. Upstream errors end the
    stream without an error frame.
    """
    try:
        async for chunk in upstream.aiter_bytes():
            if await request.is_disconnected():
                logger.info("Client disconnected, aborting NIM stream")
                break
            for frame in transcoder.feed(chunk):
                yield frame
        else:
            for frame in transcoder.finish():
                yield frame
    except httpx.HTTPError as e:
        logger.error(f"Stream error from NIM: {e!r}")
    finally:
        await upstream.aclose()


async def read_body(request: Request, limit: int) -> bytes:
    """Read the request body, giving up as soon as it passes ``limit`` bytes.

    Chunked uploads carry no Content-Length, so the middleware check in
    ``main`` cannot see them.
    """
    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise PayloadTooLargeError(f"Request body exceeds {limit} bytes.")
        chunks.append(chunk)
    return b"".join(chunks)


def _reject_constant(name: str):
    # NaN / Infinity / -Infinity are accepted by json.loads but are not JSON
    raise ValueError(f"{name} is not valid JSON")
