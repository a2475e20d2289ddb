"""Data models for the proxy."""

from typing import List

from pydantic import BaseModel, ConfigDict


# ============================================================================
# OpenAI-Compatible Request/Response Models
# ============================================================================

class ChatMessage(BaseModel):
    """OpenAI chat message format.

    Unknown keys (``name``, ``tool_call_id``, ...) are kept so the message
    reaches NIM exactly as the client sent it.
    """
    model_config = ConfigDict(extra="allow")

    role: str
    content: str


class ChatCompletionRequest(BaseModel):
    """Validated and clamped chat completion request."""
    model: str
    messages: List[ChatMessage]
    temperature: float
    max_tokens: int
    stream: bool = False


class ModelInfo(BaseModel):
    """OpenAI model info."""
    id: str
    object: str = "model"
    created: int
    owned_by: str = "nvidia-nim-proxy"


class ResponseMessage(BaseModel):
    role: str = "assistant"
    content: str


class Choice(BaseModel):
    index: int
    message: ResponseMessage
    finish_reason: str = "stop"


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(BaseModel):
    """OpenAI chat completion response, echoing the client's model id."""
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: Usage
