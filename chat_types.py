from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from langchain_core.messages import AIMessage, BaseMessage


class ModelProvider(str, Enum):
    OPEN_AI = "OPEN_AI"
    GOOGLE_AI_GEMINI = "GOOGLE_AI_GEMINI"
    OTHER = "OTHER"


class Capability(str, Enum):
    RESPONSE_FORMAT_JSON_OBJECT = "RESPONSE_FORMAT_JSON_OBJECT"
    RESPONSE_FORMAT_JSON_SCHEMA = "RESPONSE_FORMAT_JSON_SCHEMA"
    TOOL_CALLING = "TOOL_CALLING"


class ResponseFormat(str, Enum):
    TEXT = "TEXT"
    JSON = "JSON"


class FinishReason(str, Enum):
    STOP = "STOP"
    LENGTH = "LENGTH"
    TOOL_EXECUTION = "TOOL_EXECUTION"
    CONTENT_FILTER = "CONTENT_FILTER"
    OTHER = "OTHER"

    @classmethod
    def from_provider(cls, raw: Optional[str]) -> Optional["FinishReason"]:
        """
        provider별 finish_reason 문자열을 통일:
            OpenAI: stop / length / tool_calls / content_filter
            Gemini: STOP / MAX_TOKENS / SAFETY / ...
        """
        if not raw:
            return None
        return _FINISH_REASONS.get(str(raw).lower(), cls.OTHER)


_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "end_turn": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "max_tokens": FinishReason.LENGTH,
    "tool_calls": FinishReason.TOOL_EXECUTION,
    "function_call": FinishReason.TOOL_EXECUTION,
    "content_filter": FinishReason.CONTENT_FILTER,
    "safety": FinishReason.CONTENT_FILTER,
    "recitation": FinishReason.CONTENT_FILTER,
    "blocklist": FinishReason.CONTENT_FILTER,
    "prohibited_content": FinishReason.CONTENT_FILTER,
}


@dataclass(frozen=True)
class ChatRequestParameters:
    model_name: Optional[str] = None
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    response_format: Optional[ResponseFormat] = None


@dataclass(frozen=True)
class OpenAiChatRequestParameters(ChatRequestParameters):
    # OpenAI 전용 옵션
    seed: Optional[int] = None
    user: Optional[str] = None


@dataclass(frozen=True)
class ChatRequest:
    messages: List[BaseMessage]
    parameters: Optional[ChatRequestParameters] = None


@dataclass(frozen=True)
class TokenUsage:
    input_token_count: Optional[int] = None
    output_token_count: Optional[int] = None
    total_token_count: Optional[int] = None


@dataclass(frozen=True)
class ChatResponseMetadata:
    id: Optional[str] = None
    model_name: Optional[str] = None
    token_usage: Optional[TokenUsage] = None
    finish_reason: Optional[FinishReason] = None


@dataclass(frozen=True)
class ChatResponse:
    ai_message: AIMessage
    metadata: ChatResponseMetadata = field(default_factory=ChatResponseMetadata)

    @property
    def text(self) -> str:
        return message_text(self.ai_message)

    @property
    def id(self) -> Optional[str]:
        return self.metadata.id


def message_text(message: BaseMessage) -> str:
    # content가 list(멀티파트)일 수 있음 -> text 파트만 이어붙임
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for p in content or []:
        if isinstance(p, str):
            parts.append(p)
        elif isinstance(p, dict) and p.get("type") == "text":
            parts.append(p.get("text", ""))
    return "".join(parts)
