"""
Chat model listeners.

LangChain callback handler 형태로 구현한다. ChatModel.chat_* 호출에는 config의
callbacks로 전달되고, do_chat()에는 전달되지 않는다 (listener bypass).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.messages import BaseMessage
from langchain_core.outputs import LLMResult

from metrics_prom import COST_USD, MODEL_CALLS, TOKENS
from obs_log import estimate_cost_usd, log, normalize_usage


def _first_message(response: LLMResult):
    for gens in response.generations or []:
        for g in gens:
            msg = getattr(g, "message", None)
            if msg is not None:
                return msg
    return None


def response_summary(response: LLMResult) -> Dict[str, Any]:
    """LLMResult에서 model / finish_reason / usage만 뽑는다."""
    msg = _first_message(response)
    meta = (getattr(msg, "response_metadata", None) or {}) if msg is not None else {}
    llm_output = response.llm_output or {}

    usage = getattr(msg, "usage_metadata", None) if msg is not None else None
    if not usage:
        usage = llm_output.get("token_usage") or llm_output.get("usage")

    return {
        "model": meta.get("model_name") or llm_output.get("model_name"),
        "finish_reason": meta.get("finish_reason"),
        "usage": normalize_usage(usage),
    }


class LoggingChatModelListener(BaseCallbackHandler):
    """요청/응답/에러를 obs_log 이벤트로 남긴다."""

    def on_chat_model_start(
        self,
        serialized: Dict[str, Any],
        messages: List[List[BaseMessage]],
        *,
        run_id: UUID,
        parent_run_id: Optional[UUID] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        params = kwargs.get("invocation_params") or {}
        log(
            "chat_model_request",
            run_id=str(run_id),
            entry=(metadata or {}).get("entry"),
            message_count=sum(len(batch) for batch in messages),
            model=params.get("model_name") or params.get("model"),
            temperature=params.get("temperature"),
            max_tokens=params.get("max_tokens") or params.get("max_output_tokens"),
        )

    def on_llm_end(self, response: LLMResult, *, run_id: UUID, **kwargs: Any) -> None:
        log("chat_model_response", run_id=str(run_id), **response_summary(response))

    def on_llm_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        log("chat_model_error", run_id=str(run_id), error_type=type(error).__name__, message=str(error))


class MetricsChatModelListener(BaseCallbackHandler):
    """모델 호출 수 / 토큰 / 비용을 Prometheus 카운터에 누적."""

    def __init__(self, provider: str = "unknown"):
        self.provider = provider
        # run_id -> 요청 모델명 (응답에 model_name이 없을 때 사용)
        self._models: Dict[UUID, str] = {}

    def on_chat_model_start(
        self,
        serialized: Dict[str, Any],
        messages: List[List[BaseMessage]],
        *,
        run_id: UUID,
        **kwargs: Any,
    ) -> None:
        params = kwargs.get("invocation_params") or {}
        self._models[run_id] = params.get("model_name") or params.get("model") or "unknown"

    def on_llm_end(self, response: LLMResult, *, run_id: UUID, **kwargs: Any) -> None:
        requested = self._models.pop(run_id, "unknown")
        summary = response_summary(response)
        model = summary["model"] or requested
        usage = summary["usage"]

        MODEL_CALLS.labels(provider=self.provider, model=model, outcome="ok").inc()
        if usage:
            TOKENS.labels(model=model, kind="input").inc(usage["input_tokens"])
            TOKENS.labels(model=model, kind="output").inc(usage["output_tokens"])
            TOKENS.labels(model=model, kind="total").inc(usage["total_tokens"])
            COST_USD.labels(model=model).inc(estimate_cost_usd(usage))

    def on_llm_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        model = self._models.pop(run_id, "unknown")
        MODEL_CALLS.labels(provider=self.provider, model=model, outcome="error").inc()
