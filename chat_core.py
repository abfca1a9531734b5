"""
라우트별 요청 조립 + 응답 projection.

HTTP에 의존하지 않는 순수 함수들이라 api_server와 테스트에서 같이 쓴다.
"""
from __future__ import annotations

import math
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

import config
from chat_model import ChatModel
from chat_types import ChatRequest, ChatRequestParameters, ChatResponse, OpenAiChatRequestParameters

# type 태그(소문자) -> 메시지 클래스
MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "ai": AIMessage,
    "assistant": AIMessage,
}


# ==================== 파라미터 추출 ====================

def _is_number(value: Any) -> bool:
    # JSON true/false는 숫자로 보지 않음
    return isinstance(value, Number) and not isinstance(value, bool)

def get_float_param(payload: Mapping[str, Any], key: str, default: float) -> float:
    value = payload.get(key)
    if _is_number(value):
        return float(value)
    return default

def get_int_param(payload: Mapping[str, Any], key: str, default: int) -> int:
    value = payload.get(key)
    # 1e400 같은 값은 float inf로 들어옴 -> int 변환 불가, 기본값 사용
    if _is_number(value) and math.isfinite(value):
        return int(value)
    return default


# ==================== 메시지 변환 ====================

def to_chat_message(message_data: Mapping[str, Any]) -> BaseMessage:
    msg_type = str(message_data.get("type")).lower()
    content = message_data.get("content")

    message_cls = MESSAGE_TYPES.get(msg_type)
    if message_cls is None:
        raise ValueError(f"Unknown message type: {msg_type}")
    return message_cls(content=content)


# ==================== 응답 projection ====================

def build_detailed_response(response: ChatResponse) -> Dict[str, Any]:
    result: Dict[str, Any] = {"aiResponse": response.text}

    usage = response.metadata.token_usage
    if usage is not None:
        result["tokenUsage"] = {
            "inputTokens": usage.input_token_count,
            "outputTokens": usage.output_token_count,
            "totalTokens": usage.total_token_count,
        }

    finish_reason = response.metadata.finish_reason
    if finish_reason is not None:
        result["finishReason"] = {"reason": finish_reason.value}

    result["metadata"] = {
        "modelName": response.metadata.model_name,
        "responseId": response.id,
    }
    return result


# ==================== 라우트 동작 ====================

def simple_chat(chat_model: ChatModel, message: Optional[str]) -> Dict[str, Any]:
    return {"aiResponse": chat_model.chat(message)}

def chat_with_messages(chat_model: ChatModel, system_text: Optional[str], user_text: Optional[str]) -> Dict[str, Any]:
    response = chat_model.chat_messages(
        SystemMessage(content=system_text),
        HumanMessage(content=user_text),
    )
    return build_detailed_response(response)

def conversational_chat(chat_model: ChatModel, messages_data: List[Mapping[str, Any]]) -> Dict[str, Any]:
    # 변환이 전부 끝난 뒤에만 모델 호출 (알 수 없는 type이면 호출 없음)
    messages = [to_chat_message(m) for m in messages_data]
    response = chat_model.chat_history(messages)
    return build_detailed_response(response)

def advanced_parameters(payload: Mapping[str, Any]) -> ChatRequestParameters:
    return ChatRequestParameters(
        model_name=config.ADVANCED_MODEL_NAME,
        temperature=get_float_param(payload, "temperature", config.DEFAULT_TEMPERATURE),
        max_output_tokens=get_int_param(payload, "maxTokens", config.DEFAULT_MAX_TOKENS),
        top_p=get_float_param(payload, "topP", config.DEFAULT_TOP_P),
        frequency_penalty=get_float_param(payload, "frequencyPenalty", config.DEFAULT_FREQUENCY_PENALTY),
        presence_penalty=get_float_param(payload, "presencePenalty", config.DEFAULT_PRESENCE_PENALTY),
        stop_sequences=payload.get("stopSequences"),
    )

def advanced_chat(
    chat_model: ChatModel,
    system_text: Optional[str],
    user_text: Optional[str],
    payload: Mapping[str, Any],
) -> Dict[str, Any]:
    request = ChatRequest(
        messages=[SystemMessage(content=system_text), HumanMessage(content=user_text)],
        parameters=advanced_parameters(payload),
    )
    response = chat_model.chat_request(request)
    return build_detailed_response(response)

def direct_chat(chat_model: ChatModel, message: Optional[str]) -> Dict[str, Any]:
    request = ChatRequest(
        messages=[HumanMessage(content=message)],
        parameters=OpenAiChatRequestParameters(
            model_name=config.DIRECT_MODEL_NAME,
            temperature=config.DIRECT_TEMPERATURE,
        ),
    )
    # do_chat: listener bypass
    response = chat_model.do_chat(request)
    return build_detailed_response(response)

def model_info(chat_model: ChatModel) -> Dict[str, Any]:
    info: Dict[str, Any] = {}

    # 1) provider
    info["provider"] = chat_model.provider().name

    # 2) capabilities (이름순)
    capabilities = chat_model.supported_capabilities()
    info["supportedCapabilities"] = sorted(c.name for c in capabilities)
    info["capabilitiesCount"] = len(capabilities)

    # 3) default parameters
    params_map: Dict[str, Any] = {}
    defaults = chat_model.default_request_parameters()
    if defaults is not None:
        params_map["modelName"] = defaults.model_name
        params_map["temperature"] = defaults.temperature
        params_map["maxOutputTokens"] = defaults.max_output_tokens
        params_map["topP"] = defaults.top_p
        params_map["topK"] = defaults.top_k
        params_map["frequencyPenalty"] = defaults.frequency_penalty
        params_map["presencePenalty"] = defaults.presence_penalty
        params_map["stopSequences"] = defaults.stop_sequences
        if defaults.response_format is not None:
            params_map["responseFormat"] = defaults.response_format.name
    info["defaultParameters"] = params_map

    # 4) listeners
    listeners = chat_model.listeners()
    info["registeredListeners"] = [type(l).__name__ for l in listeners]
    info["listenersCount"] = len(listeners)

    return info
