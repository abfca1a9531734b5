import pytest
from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

import chat_model as chat_model_module
import config
from chat_model import ChatModel, build_chat_model, model_overrides
from chat_types import (
    Capability,
    ChatRequest,
    ChatRequestParameters,
    FinishReason,
    ModelProvider,
    OpenAiChatRequestParameters,
    ResponseFormat,
    TokenUsage,
)


class RecordingListener(BaseCallbackHandler):
    def __init__(self):
        self.events = []

    def on_chat_model_start(self, serialized, messages, *, run_id, **kwargs):
        self.events.append(("start", sum(len(b) for b in messages)))

    def on_llm_end(self, response, *, run_id, **kwargs):
        self.events.append(("end", None))


def fake_model(*replies):
    return GenericFakeChatModel(messages=iter(replies))


def test_chat_returns_plain_text():
    model = ChatModel(fake_model(AIMessage(content="Hi there")))
    assert model.chat("hello") == "Hi there"


def test_chat_messages_maps_response_metadata():
    reply = AIMessage(
        content="ok",
        id="resp-1",
        usage_metadata={"input_tokens": 4, "output_tokens": 2, "total_tokens": 6},
        response_metadata={"finish_reason": "length", "model_name": "fake-1"},
    )
    model = ChatModel(fake_model(reply))

    resp = model.chat_messages(SystemMessage(content="be brief"), HumanMessage(content="hi"))

    assert resp.text == "ok"
    assert resp.id == "resp-1"
    assert resp.metadata.model_name == "fake-1"
    assert resp.metadata.finish_reason == FinishReason.LENGTH
    assert resp.metadata.token_usage == TokenUsage(4, 2, 6)


def test_chat_history_without_usage():
    model = ChatModel(fake_model(AIMessage(content="fine")))
    resp = model.chat_history([HumanMessage(content="how are you?")])

    assert resp.text == "fine"
    assert resp.metadata.token_usage is None
    assert resp.metadata.finish_reason is None
    assert resp.id  # SDK가 run id를 채운다


def test_listeners_notified_for_chat_request_but_not_do_chat():
    listener = RecordingListener()
    model = ChatModel(
        fake_model(AIMessage(content="one"), AIMessage(content="two")),
        listeners=[listener],
    )
    request = ChatRequest(messages=[HumanMessage(content="hi")])

    model.chat_request(request)
    assert listener.events == [("start", 1), ("end", None)]

    model.do_chat(request)
    assert listener.events == [("start", 1), ("end", None)]


def test_model_overrides_map_onto_openai_fields():
    llm = ChatOpenAI(model="base-model", api_key="sk-test", temperature=0.2)
    params = ChatRequestParameters(
        model_name="other-model",
        temperature=0.5,
        max_output_tokens=100,
        top_k=5,
        stop_sequences=["END"],
    )

    update = model_overrides(llm, params)

    assert update == {
        "model_name": "other-model",
        "temperature": 0.5,
        "max_tokens": 100,
        "stop": ["END"],
    }


def test_openai_only_parameters_go_to_model_kwargs():
    llm = ChatOpenAI(model="base-model", api_key="sk-test")
    params = OpenAiChatRequestParameters(temperature=0.8, user="u-1", response_format=ResponseFormat.JSON)

    update = model_overrides(llm, params)

    assert update["temperature"] == 0.8
    assert update["model_kwargs"] == {"user": "u-1", "response_format": {"type": "json_object"}}


def test_request_parameters_do_not_mutate_shared_model():
    llm = ChatOpenAI(model="base-model", api_key="sk-test", temperature=0.2)
    model = ChatModel(llm, provider=ModelProvider.OPEN_AI)

    per_call = model._model_for(ChatRequestParameters(model_name="other-model", temperature=0.9))

    assert per_call is not llm
    assert per_call.model_name == "other-model"
    assert per_call.temperature == 0.9
    assert llm.model_name == "base-model"
    assert llm.temperature == 0.2
    assert model._model_for(None) is llm


def test_default_request_parameters_from_openai_model():
    llm = ChatOpenAI(
        model="base-model",
        api_key="sk-test",
        temperature=0.2,
        model_kwargs={"response_format": {"type": "json_object"}},
    )
    defaults = ChatModel(llm).default_request_parameters()

    assert defaults.model_name == "base-model"
    assert defaults.temperature == 0.2
    assert defaults.top_k is None
    assert defaults.stop_sequences is None
    assert defaults.response_format == ResponseFormat.JSON


def test_default_request_parameters_none_for_model_without_fields():
    assert ChatModel(fake_model()).default_request_parameters() is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("stop", FinishReason.STOP),
        ("MAX_TOKENS", FinishReason.LENGTH),
        ("tool_calls", FinishReason.TOOL_EXECUTION),
        ("SAFETY", FinishReason.CONTENT_FILTER),
        ("something_new", FinishReason.OTHER),
        ("", None),
        (None, None),
    ],
)
def test_finish_reason_from_provider(raw, expected):
    assert FinishReason.from_provider(raw) == expected


@pytest.fixture
def fresh_build():
    build_chat_model.cache_clear()
    yield
    build_chat_model.cache_clear()


def test_build_chat_model_openai(monkeypatch, fresh_build):
    monkeypatch.setattr(config, "CHAT_PROVIDER", "openai")
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(config, "CHAT_MODEL_NAME", "some/model")
    monkeypatch.setattr(config, "CHAT_MODEL_CAPABILITIES", ["TOOL_CALLING", "NOT_A_CAPABILITY"])

    model = build_chat_model()

    assert model.provider() == ModelProvider.OPEN_AI
    assert model.supported_capabilities() == {Capability.TOOL_CALLING}
    assert [type(l).__name__ for l in model.listeners()] == [
        "LoggingChatModelListener",
        "MetricsChatModelListener",
    ]
    assert model.default_request_parameters().model_name == "some/model"
    assert build_chat_model() is model


def test_build_chat_model_rejects_unknown_provider(monkeypatch, fresh_build):
    monkeypatch.setattr(config, "CHAT_PROVIDER", "carrier-pigeon")
    with pytest.raises(ValueError, match="Unsupported CHAT_PROVIDER"):
        chat_model_module.build_chat_model()
