"""
ChatModel: LangChain chat model 위에 얹는 얇은 클라이언트 어댑터.

진입점 5개:
    1. chat(str)             - 문자열 입력, 문자열 출력
    2. chat_messages(*msgs)  - 가변 인자 메시지
    3. chat_history(list)    - 메시지 리스트(대화 히스토리)
    4. chat_request(req)     - ChatRequest (파라미터 포함)
    5. do_chat(req)          - 저수준 호출, listener를 거치지 않음

모델 호출/토큰 집계/재시도는 LangChain 모델(SDK) 쪽 책임이고, 여기서는
입력 조립과 응답 읽기만 한다.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

import config
from chat_types import (
    Capability,
    ChatRequest,
    ChatRequestParameters,
    ChatResponse,
    ChatResponseMetadata,
    FinishReason,
    ModelProvider,
    ResponseFormat,
    TokenUsage,
)
from listeners import LoggingChatModelListener, MetricsChatModelListener
from otel import get_tracer

logger = logging.getLogger("uvicorn")

# 요청 파라미터 -> 모델 필드 후보 (앞에서부터 모델이 선언한 첫 필드를 사용)
PARAM_FIELDS: Dict[str, Sequence[str]] = {
    "model_name": ("model_name", "model"),
    "temperature": ("temperature",),
    "max_output_tokens": ("max_tokens", "max_output_tokens"),
    "top_p": ("top_p",),
    "top_k": ("top_k",),
    "frequency_penalty": ("frequency_penalty",),
    "presence_penalty": ("presence_penalty",),
    "stop_sequences": ("stop", "stop_sequences"),
    "seed": ("seed",),
}

JSON_MIME = "application/json"


def _model_field(model: BaseChatModel, candidates: Iterable[str]) -> Optional[str]:
    fields = type(model).model_fields
    for name in candidates:
        if name in fields:
            return name
    return None


def _read_response_format(model: BaseChatModel) -> Optional[ResponseFormat]:
    mime = getattr(model, "response_mime_type", None)
    if mime:
        return ResponseFormat.JSON if mime == JSON_MIME else ResponseFormat.TEXT
    rf = (getattr(model, "model_kwargs", None) or {}).get("response_format")
    if isinstance(rf, dict) and rf.get("type") in ("json_object", "json_schema"):
        return ResponseFormat.JSON
    return None


def model_overrides(model: BaseChatModel, parameters: Optional[ChatRequestParameters]) -> Dict[str, Any]:
    """
    ChatRequestParameters에서 값이 있는 항목만 모델 필드 이름으로 옮긴다.
    모델이 모르는 파라미터는 건너뛴다 (debug 로그).
    """
    if parameters is None:
        return {}

    update: Dict[str, Any] = {}
    extra_kwargs: Dict[str, Any] = {}

    for param, candidates in PARAM_FIELDS.items():
        value = getattr(parameters, param, None)
        if value is None:
            continue
        field_name = _model_field(model, candidates)
        if field_name is None:
            if param == "seed":
                extra_kwargs["seed"] = value
                continue
            logger.debug("chat model %s has no field for %s; skipped", type(model).__name__, param)
            continue
        update[field_name] = list(value) if param == "stop_sequences" else value

    user = getattr(parameters, "user", None)
    if user is not None:
        extra_kwargs["user"] = user

    if parameters.response_format is not None:
        if "response_mime_type" in type(model).model_fields:
            is_json = parameters.response_format == ResponseFormat.JSON
            update["response_mime_type"] = JSON_MIME if is_json else "text/plain"
        elif parameters.response_format == ResponseFormat.JSON:
            extra_kwargs["response_format"] = {"type": "json_object"}

    if extra_kwargs:
        if "model_kwargs" in type(model).model_fields:
            update["model_kwargs"] = {**(getattr(model, "model_kwargs", None) or {}), **extra_kwargs}
        else:
            logger.debug("chat model %s takes no model_kwargs; skipped %s", type(model).__name__, sorted(extra_kwargs))

    return update


def to_chat_response(message: AIMessage, fallback_model: Optional[str] = None) -> ChatResponse:
    meta = message.response_metadata or {}
    usage = message.usage_metadata

    token_usage = None
    if usage:
        token_usage = TokenUsage(
            input_token_count=usage.get("input_tokens"),
            output_token_count=usage.get("output_tokens"),
            total_token_count=usage.get("total_tokens"),
        )

    return ChatResponse(
        ai_message=message,
        metadata=ChatResponseMetadata(
            id=message.id,
            model_name=meta.get("model_name") or meta.get("model") or fallback_model,
            token_usage=token_usage,
            finish_reason=FinishReason.from_provider(meta.get("finish_reason")),
        ),
    )


class ChatModel:
    def __init__(
        self,
        model: BaseChatModel,
        provider: ModelProvider = ModelProvider.OTHER,
        capabilities: Optional[Iterable[Capability]] = None,
        listeners: Optional[List[BaseCallbackHandler]] = None,
    ):
        self._model = model
        self._provider = provider
        self._capabilities = frozenset(capabilities or ())
        self._listeners = list(listeners or [])

    # --- 진입점 ---

    def chat(self, user_message: str) -> str:
        return self._invoke("chat", [HumanMessage(content=user_message)]).text

    def chat_messages(self, *messages: BaseMessage) -> ChatResponse:
        return self._invoke("chat_messages", list(messages))

    def chat_history(self, messages: List[BaseMessage]) -> ChatResponse:
        return self._invoke("chat_history", list(messages))

    def chat_request(self, request: ChatRequest) -> ChatResponse:
        return self._invoke("chat_request", request.messages, request.parameters)

    def do_chat(self, request: ChatRequest) -> ChatResponse:
        return self._invoke("do_chat", request.messages, request.parameters, notify=False)

    # --- introspection ---

    def provider(self) -> ModelProvider:
        return self._provider

    def supported_capabilities(self) -> frozenset:
        return self._capabilities

    def default_request_parameters(self) -> Optional[ChatRequestParameters]:
        values: Dict[str, Any] = {}
        for param, candidates in PARAM_FIELDS.items():
            if param == "seed":
                continue
            field_name = _model_field(self._model, candidates)
            if field_name is not None:
                values[param] = getattr(self._model, field_name, None)

        response_format = _read_response_format(self._model)
        if not values and response_format is None:
            return None

        stop = values.get("stop_sequences")
        if isinstance(stop, str):
            values["stop_sequences"] = [stop]
        return ChatRequestParameters(response_format=response_format, **values)

    def listeners(self) -> List[BaseCallbackHandler]:
        return list(self._listeners)

    # --- 내부 ---

    def _model_for(self, parameters: Optional[ChatRequestParameters]) -> BaseChatModel:
        update = model_overrides(self._model, parameters)
        if not update:
            return self._model
        # 공유 모델은 건드리지 않고 요청마다 복사본 사용
        return self._model.model_copy(update=update)

    def _effective_model_name(self, model: BaseChatModel) -> Optional[str]:
        field_name = _model_field(model, PARAM_FIELDS["model_name"])
        return getattr(model, field_name, None) if field_name else None

    def _invoke(
        self,
        entry: str,
        messages: List[BaseMessage],
        parameters: Optional[ChatRequestParameters] = None,
        notify: bool = True,
    ) -> ChatResponse:
        model = self._model_for(parameters)
        model_name = self._effective_model_name(model)

        run_config: Dict[str, Any] = {"metadata": {"entry": entry, "provider": self._provider.value}}
        if notify and self._listeners:
            run_config["callbacks"] = self._listeners

        with get_tracer().start_as_current_span(f"chat_model.{entry}") as span:
            span.set_attribute("chat.provider", self._provider.value)
            span.set_attribute("chat.model", model_name or "")
            span.set_attribute("chat.message_count", len(messages))
            span.set_attribute("chat.listeners_notified", bool(run_config.get("callbacks")))
            ai_message = model.invoke(messages, config=run_config)

        return to_chat_response(ai_message, fallback_model=model_name)


def _configured_capabilities() -> List[Capability]:
    caps = []
    for name in config.CHAT_MODEL_CAPABILITIES:
        try:
            caps.append(Capability(name))
        except ValueError:
            logger.warning("Unknown capability in CHAT_MODEL_CAPABILITIES: %s", name)
    return caps


@lru_cache(maxsize=1)
def build_chat_model() -> ChatModel:
    """환경 설정으로 프로세스 공용 ChatModel 생성 (첫 요청 시 1회)."""
    provider = config.CHAT_PROVIDER.lower()
    json_format = (config.CHAT_RESPONSE_FORMAT or "").lower() == "json"

    if provider == "openai":
        kwargs: Dict[str, Any] = {
            "model": config.CHAT_MODEL_NAME,
            "api_key": config.OPENAI_API_KEY,
            "base_url": config.OPENAI_BASE_URL,
            "timeout": config.LLM_TIMEOUT_SEC,
            "max_retries": config.LLM_MAX_RETRIES,
        }
        if config.CHAT_TEMPERATURE is not None:
            kwargs["temperature"] = config.CHAT_TEMPERATURE
        if config.CHAT_MAX_OUTPUT_TOKENS is not None:
            kwargs["max_tokens"] = config.CHAT_MAX_OUTPUT_TOKENS
        if json_format:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        model: BaseChatModel = ChatOpenAI(**kwargs)
        model_provider = ModelProvider.OPEN_AI

    elif provider == "google_genai":
        kwargs = {
            "model": config.CHAT_MODEL_NAME,
            "google_api_key": config.GOOGLE_API_KEY,
            "timeout": config.LLM_TIMEOUT_SEC,
            "max_retries": config.LLM_MAX_RETRIES,
        }
        if config.CHAT_TEMPERATURE is not None:
            kwargs["temperature"] = config.CHAT_TEMPERATURE
        if config.CHAT_MAX_OUTPUT_TOKENS is not None:
            kwargs["max_output_tokens"] = config.CHAT_MAX_OUTPUT_TOKENS
        if json_format:
            kwargs["response_mime_type"] = JSON_MIME
        model = ChatGoogleGenerativeAI(**kwargs)
        model_provider = ModelProvider.GOOGLE_AI_GEMINI

    else:
        raise ValueError(f"Unsupported CHAT_PROVIDER: {config.CHAT_PROVIDER}")

    logger.info("chat model ready: provider=%s model=%s", model_provider.value, config.CHAT_MODEL_NAME)

    return ChatModel(
        model,
        provider=model_provider,
        capabilities=_configured_capabilities(),
        listeners=[LoggingChatModelListener(), MetricsChatModelListener(provider=model_provider.value)],
    )
