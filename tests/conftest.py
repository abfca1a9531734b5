import os
import sys
import uuid

import pytest
from fastapi.testclient import TestClient
from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.messages import AIMessage, HumanMessage

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import api_server
from chat_types import (
    Capability,
    ChatRequestParameters,
    ChatResponse,
    ChatResponseMetadata,
    FinishReason,
    ModelProvider,
    ResponseFormat,
    TokenUsage,
)


class AuditListener(BaseCallbackHandler):
    pass


class TimingListener(BaseCallbackHandler):
    pass


class RecordingChatModel:
    """
    결정적인 stub 클라이언트. 어떤 진입점이 어떤 인자로 불렸는지 기록한다.
    """

    def __init__(self):
        self.calls = []
        self.token_usage = TokenUsage(input_token_count=12, output_token_count=7, total_token_count=19)
        self.finish_reason = FinishReason.STOP
        self.capabilities = {Capability.TOOL_CALLING, Capability.RESPONSE_FORMAT_JSON_SCHEMA, Capability.RESPONSE_FORMAT_JSON_OBJECT}
        self.defaults = ChatRequestParameters(
            model_name="stub-model",
            temperature=0.2,
            max_output_tokens=256,
            stop_sequences=["###"],
            response_format=ResponseFormat.TEXT,
        )
        self._listeners = [AuditListener(), TimingListener()]

    def _respond(self, entry, messages, parameters=None) -> ChatResponse:
        self.calls.append({"entry": entry, "messages": list(messages), "parameters": parameters})
        last_user = next((m.content for m in reversed(messages) if isinstance(m, HumanMessage)), "")
        model_name = (parameters.model_name if parameters else None) or "stub-model"
        return ChatResponse(
            ai_message=AIMessage(content=f"echo: {last_user}"),
            metadata=ChatResponseMetadata(
                id=f"resp-{uuid.uuid4()}",
                model_name=model_name,
                token_usage=self.token_usage,
                finish_reason=self.finish_reason,
            ),
        )

    def chat(self, user_message):
        return self._respond("chat", [HumanMessage(content=user_message)]).text

    def chat_messages(self, *messages):
        return self._respond("chat_messages", messages)

    def chat_history(self, messages):
        return self._respond("chat_history", messages)

    def chat_request(self, request):
        return self._respond("chat_request", request.messages, request.parameters)

    def do_chat(self, request):
        return self._respond("do_chat", request.messages, request.parameters)

    def provider(self):
        return ModelProvider.OPEN_AI

    def supported_capabilities(self):
        return frozenset(self.capabilities)

    def default_request_parameters(self):
        return self.defaults

    def listeners(self):
        return list(self._listeners)


@pytest.fixture
def stub_model():
    return RecordingChatModel()


@pytest.fixture
def client(stub_model):
    api_server.app.dependency_overrides[api_server.get_chat_model] = lambda: stub_model
    try:
        yield TestClient(api_server.app)
    finally:
        api_server.app.dependency_overrides.clear()
