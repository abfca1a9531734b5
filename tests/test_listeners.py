import json

from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage
from prometheus_client import REGISTRY

import metrics_prom
from chat_model import ChatModel
from chat_types import ChatRequest
from listeners import LoggingChatModelListener, MetricsChatModelListener


def _reply(model_name):
    return AIMessage(
        content="ok",
        usage_metadata={"input_tokens": 10, "output_tokens": 5, "total_tokens": 15},
        response_metadata={"finish_reason": "stop", "model_name": model_name},
    )


def _events(out):
    events = []
    for line in out.splitlines():
        line = line.strip()
        if line.startswith("{"):
            events.append(json.loads(line))
    return events


def test_logging_listener_emits_request_and_response(capsys):
    model = ChatModel(
        GenericFakeChatModel(messages=iter([_reply("log-model")])),
        listeners=[LoggingChatModelListener()],
    )

    model.chat_request(ChatRequest(messages=[HumanMessage(content="hi")]))

    events = _events(capsys.readouterr().out)
    names = [e["event"] for e in events]
    assert names == ["chat_model_request", "chat_model_response"]

    request_evt, response_evt = events
    assert request_evt["entry"] == "chat_request"
    assert request_evt["message_count"] == 1
    assert response_evt["model"] == "log-model"
    assert response_evt["finish_reason"] == "stop"
    assert response_evt["usage"] == {"input_tokens": 10, "output_tokens": 5, "total_tokens": 15}
    assert request_evt["run_id"] == response_evt["run_id"]


def test_logging_listener_silent_for_do_chat(capsys):
    model = ChatModel(
        GenericFakeChatModel(messages=iter([_reply("log-model")])),
        listeners=[LoggingChatModelListener()],
    )

    model.do_chat(ChatRequest(messages=[HumanMessage(content="hi")]))

    assert _events(capsys.readouterr().out) == []


def test_metrics_listener_counts_calls_and_tokens():
    name = f"{metrics_prom.APP_NAME}"
    calls_labels = {"provider": "OPEN_AI", "model": "metrics-model", "outcome": "ok"}
    input_labels = {"model": "metrics-model", "kind": "input"}

    calls_before = REGISTRY.get_sample_value(f"{name}_model_calls_total", calls_labels) or 0
    input_before = REGISTRY.get_sample_value(f"{name}_tokens_total", input_labels) or 0

    model = ChatModel(
        GenericFakeChatModel(messages=iter([_reply("metrics-model")])),
        listeners=[MetricsChatModelListener(provider="OPEN_AI")],
    )
    model.chat("hi")

    assert REGISTRY.get_sample_value(f"{name}_model_calls_total", calls_labels) == calls_before + 1
    assert REGISTRY.get_sample_value(f"{name}_tokens_total", input_labels) == input_before + 10
