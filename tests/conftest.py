"""Shared test fixtures for the NIM proxy."""

from __future__ import annotations

import json

import pytest

from nimproxy.config import Config


def make_config(**overrides) -> Config:
    """Config with a dummy key and a fake NIM base; env is not consulted for these."""
    values = {
        "nim_api_key": "test-key",
        "nim_api_base": "https://nim.test/v1",
        "show_reasoning": False,
        "enable_thinking_mode": False,
        "default_model": "meta/llama-3.1-70b-instruct",
        "default_temperature": 0.6,
        "default_max_tokens": 9024,
        "max_body_bytes": 1024 * 1024,
    }
    values.update(overrides)
    return Config(**values)


def sse(obj) -> str:
    """Format one upstream SSE frame."""
    return f"data: {json.dumps(obj, ensure_ascii=False)}\n\n"


def stream_chunk(delta: dict, finish_reason=None) -> dict:
    """A NIM chat.completion.chunk carrying one delta."""
    return {
        "id": "chatcmpl-nim-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": "openai/gpt-oss-120b",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def parse_frames(frames) -> list:
    """Decode outbound SSE frames: JSON payloads as dicts, [DONE] as the string."""
    out = []
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n"), frame
        payload = frame[len("data: "):-2]
        out.append(payload if payload == "[DONE]" else json.loads(payload))
    return out


@pytest.fixture()
def config() -> Config:
    return make_config()
