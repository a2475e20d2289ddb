"""Tests for request validation, clamping and NIM payload construction."""

from __future__ import annotations

import pytest

from conftest import make_config
from nimproxy.errors import InvalidRequestError
from nimproxy.normalizer import build_upstream_payload, normalize_request

USER_MSG = {"role": "user", "content": "hi"}


def body(**overrides):
    raw = {"model": "gpt-4o", "messages": [USER_MSG]}
    raw.update(overrides)
    return raw


class TestValidation:
    def test_valid_request(self, config):
        req = normalize_request(body(), config)
        assert req.model == "gpt-4o"
        assert [m.role for m in req.messages] == ["user"]
        assert req.stream is False

    @pytest.mark.parametrize("raw", [None, [], "text", 3])
    def test_body_must_be_object(self, config, raw):
        with pytest.raises(InvalidRequestError, match="JSON object"):
            normalize_request(raw, config)

    @pytest.mark.parametrize("model", [None, "", 12, ["gpt-4"]])
    def test_missing_or_invalid_model_rejected(self, config, model):
        raw = body(model=model)
        if model is None:
            del raw["model"]
        with pytest.raises(InvalidRequestError, match='"model"') as exc_info:
            normalize_request(raw, config)
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_type == "invalid_request_error"

    @pytest.mark.parametrize("messages", [None, "hi", {"role": "user"}])
    def test_messages_must_be_array(self, config, messages):
        with pytest.raises(InvalidRequestError, match="must be an array"):
            normalize_request(body(messages=messages), config)

    def test_empty_messages_rejected(self, config):
        with pytest.raises(InvalidRequestError, match="must not be empty"):
            normalize_request(body(messages=[]), config)

    def test_message_must_be_object(self, config):
        with pytest.raises(InvalidRequestError, match=r"messages\[1\] must be an object"):
            normalize_request(body(messages=[USER_MSG, "oops"]), config)

    @pytest.mark.parametrize("role", [None, "bot", "USER", 1])
    def test_invalid_role_named(self, config, role):
        with pytest.raises(InvalidRequestError, match=r"messages\[0\]\.role") as exc_info:
            normalize_request(body(messages=[{"role": role, "content": "x"}]), config)
        assert repr(role) in exc_info.value.message

    @pytest.mark.parametrize("content", [None, 5, [{"type": "text", "text": "x"}]])
    def test_non_string_content_rejected(self, config, content):
        msg = {"role": "assistant", "content": content}
        with pytest.raises(InvalidRequestError, match=r"messages\[1\] \(assistant\)"):
            normalize_request(body(messages=[USER_MSG, msg]), config)

    def test_missing_content_rejected(self, config):
        with pytest.raises(InvalidRequestError, match='"content"'):
            normalize_request(body(messages=[{"role": "system"}]), config)

    @pytest.mark.parametrize("role", ["system", "user", "assistant", "tool"])
    def test_all_roles_accepted(self, config, role):
        req = normalize_request(body(messages=[{"role": role, "content": "x"}]), config)
        assert req.messages[0].role == role


class TestClamping:
    @pytest.mark.parametrize("given,expected", [
        (5, 2.0),
        (2.5, 2.0),
        (-1, 0.0),
        (0, 0.0),
        (0.9, 0.9),
        (2, 2.0),
        (float("inf"), 2.0),
        (float("-inf"), 0.0),
        (10 ** 400, 2.0),
    ])
    def test_temperature_clamped(self, config, given, expected):
        assert normalize_request(body(temperature=given), config).temperature == expected

    @pytest.mark.parametrize("given", [None, "0.9", True, [1], float("nan")])
    def test_temperature_default_when_absent_or_non_numeric(self, given):
        config = make_config(default_temperature=0.6)
        raw = body(temperature=given)
        assert normalize_request(raw, config).temperature == 0.6

    @pytest.mark.parametrize("given,expected", [
        (0, 1),
        (-50, 1),
        (1, 1),
        (512, 512),
        (9024, 9024),
        (100000, 9024),
        (300.7, 300),
        (float("inf"), 9024),
        (float("-inf"), 1),
        (10 ** 400, 9024),
        (-(10 ** 400), 1),
    ])
    def test_max_tokens_clamped(self, config, given, expected):
        assert normalize_request(body(max_tokens=given), config).max_tokens == expected

    @pytest.mark.parametrize("given", [None, "100", False, float("nan")])
    def test_max_tokens_default_when_absent_or_non_numeric(self, given):
        config = make_config(default_max_tokens=2048)
        assert normalize_request(body(max_tokens=given), config).max_tokens == 2048

    @pytest.mark.parametrize("given,expected", [
        (True, True),
        (1, True),
        ("yes", True),
        (None, False),
        (0, False),
        ("", False),
    ])
    def test_stream_coerced_to_bool(self, config, given, expected):
        assert normalize_request(body(stream=given), config).stream is expected


class TestUpstreamPayload:
    def test_payload_fields(self, config):
        req = normalize_request(body(temperature=7, max_tokens=0, stream=True), config)
        payload = build_upstream_payload(req, "openai/gpt-oss-120b", config)
        assert payload == {
            "model": "openai/gpt-oss-120b",
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 2.0,
            "max_tokens": 1,
            "stream": True,
        }

    def test_thinking_directive_added_when_enabled(self):
        config = make_config(enable_thinking_mode=True)
        req = normalize_request(body(), config)
        payload = build_upstream_payload(req, "m/x", config)
        assert payload["chat_template_kwargs"] == {"thinking": True}

    def test_no_thinking_directive_when_disabled(self, config):
        req = normalize_request(body(), config)
        assert "chat_template_kwargs" not in build_upstream_payload(req, "m/x", config)

    def test_messages_passed_through_in_order_with_extra_keys(self, config):
        messages = [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hello", "name": "alice"},
            {"role": "assistant", "content": "hey"},
            {"role": "tool", "content": "42", "tool_call_id": "call_1"},
        ]
        req = normalize_request(body(messages=messages), config)
        payload = build_upstream_payload(req, "m/x", config)
        assert payload["messages"] == messages
