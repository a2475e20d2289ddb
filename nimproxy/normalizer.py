"""Inbound request validation and NIM payload construction."""

import logging
import math
from typing import Any, Dict, List

from .config import Config
from .errors import InvalidRequestError
from .models import ChatCompletionRequest, ChatMessage

logger = logging.getLogger(__name__)

ALLOWED_ROLES = ("system", "user", "assistant", "tool")

TEMPERATURE_MIN = 0.0
TEMPERATURE_MAX = 2.0
MAX_TOKENS_MIN = 1
MAX_TOKENS_MAX = 9024


def _is_number(value: Any) -> bool:
    # bool is an int subclass; "stream": true must not count as a temperature
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    # NaN has no place in a range; infinities and huge ints clamp normally
    return not (isinstance(value, float) and math.isnan(value))


def _clamp(value, low, high):
    return max(low, min(high, value))


def _validate_messages(messages: Any) -> List[ChatMessage]:
    if not isinstance(messages, list):
        raise InvalidRequestError('"messages" must be an array.')
    if not messages:
        raise InvalidRequestError('"messages" must not be empty.')

    validated = []
    for i, msg in enumerate(messages):
        if not isinstance(msg, dict):
            raise InvalidRequestError(f"messages[{i}] must be an object.")

        role = msg.get("role")
        if role not in ALLOWED_ROLES:
            raise InvalidRequestError(
                f"messages[{i}].role {role!r} is invalid "
                f"(expected one of: {', '.join(ALLOWED_ROLES)})."
            )

        if not isinstance(msg.get("content"), str):
            raise InvalidRequestError(
                f'messages[{i}] ({role}) is missing "content" or it is not a string.'
            )

        validated.append(ChatMessage(**msg))
    return validated


def normalize_request(raw: Any, config: Config) -> ChatCompletionRequest:
    """
    Validate a raw chat completion body and clamp its sampling parameters.

    Raises InvalidRequestError on the first problem found; nothing is sent
    upstream for a rejected request.

    Args:
        raw: Decoded JSON body as received from the client
        config: Supplies the temperature/max_tokens defaults
    """
    if not isinstance(raw, dict):
        raise InvalidRequestError("Request body must be a JSON object.")

    model = raw.get("model")
    if not model or not isinstance(model, str):
        raise InvalidRequestError('Missing or invalid "model" (must be a string).')

    messages = _validate_messages(raw.get("messages"))

    temperature = raw.get("temperature")
    if _is_number(temperature):
        temperature = float(_clamp(temperature, TEMPERATURE_MIN, TEMPERATURE_MAX))
    else:
        temperature = config.default_temperature

    max_tokens = raw.get("max_tokens")
    if _is_number(max_tokens):
        max_tokens = int(_clamp(max_tokens, MAX_TOKENS_MIN, MAX_TOKENS_MAX))
    else:
        max_tokens = config.default_max_tokens

    return ChatCompletionRequest(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        stream=bool(raw.get("stream")),
    )


def build_upstream_payload(
    request: ChatCompletionRequest,
    upstream_model: str,
    config: Config,
) -> Dict[str, Any]:
    """Build the NIM /chat/completions body for a normalized request."""
    payload = {
        "model": upstream_model,
        "messages": [m.model_dump() for m in request.messages],
        "temperature": request.temperature,
        "max_tokens": request.max_tokens,
        "stream": request.stream,
    }

    if config.enable_thinking_mode:
        payload["chat_template_kwargs"] = {"thinking": True}

    logger.debug(f"Upstream payload: model={upstream_model}, messages={len(request.messages)}, "
                 f"stream={request.stream}")
    return payload
