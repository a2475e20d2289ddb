"""
NIM -> OpenAI response transcoding.

Non-streaming bodies are reshaped by ``transcode_completion``. Streams go
through one ``StreamTranscoder`` per connection, which owns the carry-over
buffer and the open/closed state of the ``<think>`` wrapper.
"""

import codecs
import json
import logging
import time
from typing import Any, Dict, List, Optional, Union

from .config import Config
from .errors import ProxyInternalError
from .models import ChatCompletionResponse, Choice, ResponseMessage, Usage

logger = logging.getLogger(__name__)

REASONING_FIELD = "reasoning_content"
THINK_OPEN = "<think>\n"
THINK_CLOSE = "\n</think>\n\n"
DONE_FRAME = "data: [DONE]\n\n"


# =============================================================================
# Non-streaming
# =============================================================================

def merge_reasoning(message: Dict[str, Any], show_reasoning: bool) -> ResponseMessage:
    """Fold reasoning into visible content, or drop it."""
    content = message.get("content") or ""
    reasoning = message.get(REASONING_FIELD)

    if show_reasoning and reasoning:
        content = f"{THINK_OPEN}{reasoning}{THINK_CLOSE}{content}"

    return ResponseMessage(role=message.get("role") or "assistant", content=content)


def transcode_completion(
    body: Any,
    requested_model: str,
    config: Config,
) -> Dict[str, Any]:
    """
    Reshape a NIM chat completion into the OpenAI response format.

    The response echoes ``requested_model``, never the NIM model id.
    A body without choices, or a choice without message content, is a
    broken upstream contract and raises ProxyInternalError.
    """
    choices = body.get("choices") if isinstance(body, dict) else None
    if not isinstance(choices, list) or not choices:
        logger.error(f"NIM response had no choices: {str(body)[:500]}")
        raise ProxyInternalError("Upstream response contained no choices")

    out = []
    for idx, choice in enumerate(choices):
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict) or "content" not in message:
            logger.error(f"NIM choice {idx} had no message content: {str(choice)[:500]}")
            raise ProxyInternalError(f"Upstream response choice {idx} has no message content")

        out.append(Choice(
            index=choice["index"] if isinstance(choice.get("index"), int) else idx,
            message=merge_reasoning(message, config.show_reasoning),
            finish_reason=choice.get("finish_reason") or "stop",
        ))

    usage = body.get("usage")
    if isinstance(usage, dict):
        usage = Usage(**{k: v for k, v in usage.items() if k in Usage.model_fields and isinstance(v, int)})
    else:
        usage = Usage()

    response = ChatCompletionResponse(
        id=body.get("id") or f"chatcmpl-{int(time.time() * 1000)}",
        created=int(time.time()),
        model=requested_model,
        choices=out,
        usage=usage,
    )
    return response.model_dump()


# =============================================================================
# Streaming
# =============================================================================

def format_sse(data: Union[str, Dict[str, Any]]) -> str:
    """Format one SSE data frame."""
    if not isinstance(data, str):
        data = json.dumps(data)
    return f"data: {data}\n\n"


class StreamTranscoder:
    """
    Per-connection SSE transcoder.

    Bytes from NIM arrive in arbitrary chunks. ``feed`` appends them to a
    carry-over buffer, processes every complete line, and keeps the
    unterminated tail for the next call. Output is identical however the
    input was split.

    Never share an instance between requests.
    """

    def __init__(self, requested_model: str, show_reasoning: bool):
        self.requested_model = requested_model
        self.show_reasoning = show_reasoning
        self.buffer = ""
        self.reasoning_open = False
        # multi-byte characters may straddle chunk boundaries
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        """Consume one upstream chunk; return the outbound SSE frames it completes."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self.buffer += chunk

        lines = self.buffer.split("\n")
        self.buffer = lines.pop()

        frames = []
        for line in lines:
            frames.extend(self._process_line(line.rstrip("\r")))
        return frames

    def finish(self) -> List[str]:
        """
        Flush at end of upstream stream.

        Processes a final line that lacked a newline, then closes a still
        open ``<think>`` wrapper so the client never sees an unterminated tag.
        """
        tail = self.buffer + self._decoder.decode(b"", final=True)
        self.buffer = ""

        frames = []
        if tail.strip():
            frames.extend(self._process_line(tail.rstrip("\r")))

        if self.show_reasoning and self.reasoning_open:
            frames.append(self._close_frame())
        return frames

    def _process_line(self, line: str) -> List[str]:
        # blank lines are frame separators; event:/id:/comment lines are dropped
        if not line.startswith("data:"):
            return []

        payload = line[5:].strip()

        if payload == "[DONE]":
            frames = []
            if self.show_reasoning and self.reasoning_open:
                frames.append(self._close_frame())
            frames.append(DONE_FRAME)
            return frames

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse NIM stream chunk ({e}): {line[:100]}")
            return [f"{line}\n\n"]

        if not isinstance(data, dict):
            return [f"{line}\n\n"]

        data["model"] = self.requested_model
        delta = self._first_delta(data)
        if delta is not None:
            self._transform_delta(delta)

        return [format_sse(data)]

    @staticmethod
    def _first_delta(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta")
        return delta if isinstance(delta, dict) else None

    def _transform_delta(self, delta: Dict[str, Any]):
        if not self.show_reasoning:
            delta.pop(REASONING_FIELD, None)
            return

        reasoning = delta.pop(REASONING_FIELD, None)
        content = delta.get("content")
        has_reasoning = isinstance(reasoning, str) and reasoning != ""
        has_content = isinstance(content, str) and content != ""

        text = ""
        if has_reasoning:
            if not self.reasoning_open:
                self.reasoning_open = True
                text += THINK_OPEN
            text += reasoning

        if has_content:
            if self.reasoning_open:
                text += THINK_CLOSE
                self.reasoning_open = False
            text += content

        if has_reasoning or "content" in delta:
            delta["content"] = text

    def _close_frame(self) -> str:
        self.reasoning_open = False
        return format_sse({
            "id": None,
            "object": "chat.completion.chunk",
            "created": int(time.time()),
            "model": self.requested_model,
            "choices": [{
                "index": 0,
                "delta": {"content": THINK_CLOSE},
                "finish_reason": None,
            }],
        })
