"""Client model id to NIM model id resolution."""

from typing import Any, List

# OpenAI-ish model ids -> NIM model ids
MODEL_MAPPING = {
    "gpt-3.5-turbo": "nvidia/llama-3.1-nemotron-ultra-253b-v1",
    "gpt-4": "qwen/qwen3-coder-480b-a35b-instruct",
    "gpt-4-turbo": "moonshotai/kimi-k2-instruct-0905",
    "gpt-4o": "deepseek-ai/deepseek-v3.1-terminus",
    "claude-3-opus": "openai/gpt-oss-120b",
    "claude-3-sonnet": "openai/gpt-oss-20b",
    "gemini-pro": "qwen/qwen3-next-80b-a3b-thinking",
}

LARGE_FALLBACK_MODEL = "meta/llama-3.1-405b-instruct"
MID_FALLBACK_MODEL = "meta/llama-3.1-70b-instruct"

_LARGE_HINTS = ("gpt-4", "opus", "405b")
_MID_HINTS = ("claude", "gemini", "70b")


def resolve_model(requested: Any, default_model: str) -> str:
    """
    Map a client-facing model id to the NIM model to call.

    Rules, first match wins:
    1. missing or non-string -> ``default_model``
    2. exact key in MODEL_MAPPING -> mapped id
    3. contains "/" or "-" -> assumed to be a NIM id already, returned as is
    4. name heuristic -> large or mid-size fallback
    5. anything else -> ``default_model``

    Rule 3 runs before rule 4, so an unmapped "custom-opus" passes through
    untouched rather than being upgraded to the large fallback.
    """
    if not requested or not isinstance(requested, str):
        return default_model

    if requested in MODEL_MAPPING:
        return MODEL_MAPPING[requested]

    if "/" in requested or "-" in requested:
        return requested

    lower = requested.lower()
    if any(hint in lower for hint in _LARGE_HINTS):
        return LARGE_FALLBACK_MODEL
    if any(hint in lower for hint in _MID_HINTS):
        return MID_FALLBACK_MODEL

    return default_model


def list_client_models() -> List[str]:
    """Client-facing model ids, in table order."""
    return list(MODEL_MAPPING)
