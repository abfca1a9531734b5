import logging
import traceback
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.routing import Match

import chat_core
import config
from chat_model import ChatModel, build_chat_model
from metrics_prom import INFLIGHT, REQ_COUNT, REQ_LATENCY_MS
from obs_log import log, normalize_usage
from otel import setup_tracing
from schemas import (
    AdvancedChatRequest,
    ConversationChatRequest,
    DirectChatRequest,
    MessagesChatRequest,
    SimpleChatRequest,
)
from utils_obs import REQUEST_ID_HEADER, Timer, request_id_from

# 로깅 설정 (uvicorn 로그와 통합)
logger = logging.getLogger("uvicorn")

API_PREFIX = "/api/v1/chat"

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("LIFESPAN: Startup initiated.")
    try:
        if setup_tracing():
            logger.info("LIFESPAN: OTLP tracing enabled.")
    except Exception as e:
        # tracing 실패로 서버가 안 뜨면 안 됨
        logger.error(f"LIFESPAN: Failed to set up tracing: {e}")
        traceback.print_exc()

    yield

    logger.info("LIFESPAN: Shutdown initiated.")

app = FastAPI(title="ChatModel Demo API (LangChain)", lifespan=lifespan)

def get_chat_model(request: Request) -> ChatModel:
    # 첫 요청에서 1회 생성 (API 키 없이도 서버는 뜬다)
    try:
        return build_chat_model()
    except Exception as e:
        # 클라이언트 생성 실패도 라우트 실패와 같은 모양(로그 + 500 detail)으로
        rid = getattr(request.state, "request_id", None)
        logger.exception(f"[client_build] request_id={rid} failed")
        log("chat_failed", route=request.url.path, request_id=rid, stage="client_build",
            error_type=type(e).__name__, message=str(e))
        raise HTTPException(status_code=500, detail=f"Internal error: {e}")

def _endpoint_label(request: Request) -> str:
    # metric label은 라우트 템플릿으로 고정 (임의 경로는 "unmatched")
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match != Match.NONE:
            return getattr(route, "path", "unmatched")
    return "unmatched"

@app.middleware("http")
async def observe_requests(request: Request, call_next):
    rid = request_id_from(request.headers)
    request.state.request_id = rid
    endpoint = _endpoint_label(request)
    timer = Timer.start()

    INFLIGHT.labels(endpoint=endpoint).inc()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        response.headers[REQUEST_ID_HEADER] = rid
        return response
    finally:
        INFLIGHT.labels(endpoint=endpoint).dec()
        REQ_COUNT.labels(endpoint=endpoint, status=str(status)).inc()
        REQ_LATENCY_MS.labels(endpoint=endpoint).observe(timer.ms())

def _handle(route: str, request: Request, call: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """
    공통 처리: 실행 + 운영 로그. 실패는 재시도 없이 500으로 올린다.
    """
    rid = getattr(request.state, "request_id", None)
    timer = Timer.start()
    try:
        result = call()
    except Exception as e:
        logger.exception(f"[{route}] request_id={rid} failed")
        log("chat_failed", route=route, request_id=rid, latency_ms=timer.ms(),
            error_type=type(e).__name__, message=str(e))
        raise HTTPException(status_code=500, detail=f"Internal error: {e}")

    token_usage = result.get("tokenUsage") or {}
    log(
        "chat_done",
        route=route,
        request_id=rid,
        latency_ms=timer.ms(),
        model=(result.get("metadata") or {}).get("modelName"),
        finish_reason=(result.get("finishReason") or {}).get("reason"),
        usage=normalize_usage({
            "input_tokens": token_usage.get("inputTokens"),
            "output_tokens": token_usage.get("outputTokens"),
            "total_tokens": token_usage.get("totalTokens"),
        }) if token_usage else {},
    )
    return result

@app.get("/health")
def health():
    return {"ok": True}

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

# ENDPOINT 1: chat(str) - 문자열 in, 문자열 out
@app.post(f"{API_PREFIX}/simple")
def simple_chat(req: SimpleChatRequest, request: Request, chat_model: ChatModel = Depends(get_chat_model)):
    return _handle("simple", request, lambda: chat_core.simple_chat(chat_model, req.message))

# ENDPOINT 2: chat_messages(*messages) - system + user
@app.post(f"{API_PREFIX}/with-chat-messages")
def chat_with_messages(req: MessagesChatRequest, request: Request, chat_model: ChatModel = Depends(get_chat_model)):
    # 키 자체가 없을 때만 기본 system 메시지 (명시적 null은 그대로 전달)
    system_text = req.system_message if "system_message" in req.model_fields_set else config.DEFAULT_SYSTEM_MESSAGE
    return _handle(
        "with-chat-messages",
        request,
        lambda: chat_core.chat_with_messages(chat_model, system_text, req.user_message),
    )

# ENDPOINT 3: chat_history(list) - 대화 히스토리
@app.post(f"{API_PREFIX}/conversation")
def conversational_chat(req: ConversationChatRequest, request: Request, chat_model: ChatModel = Depends(get_chat_model)):
    messages_data = [m.model_dump() for m in req.messages]
    return _handle("conversation", request, lambda: chat_core.conversational_chat(chat_model, messages_data))

# ENDPOINT 4: chat_request(ChatRequest) - 파라미터 전체 지정
@app.post(f"{API_PREFIX}/advanced")
def advanced_chat(req: AdvancedChatRequest, request: Request, chat_model: ChatModel = Depends(get_chat_model)):
    system_text = req.system_message if "system_message" in req.model_fields_set else config.DEFAULT_SYSTEM_MESSAGE
    payload = req.model_dump(by_alias=True)
    return _handle(
        "advanced",
        request,
        lambda: chat_core.advanced_chat(chat_model, system_text, req.user_message, payload),
    )

# ENDPOINT 5: do_chat(ChatRequest) - listener를 거치지 않는 저수준 호출
@app.post(f"{API_PREFIX}/direct")
def direct_chat(req: DirectChatRequest, request: Request, chat_model: ChatModel = Depends(get_chat_model)):
    return _handle("direct", request, lambda: chat_core.direct_chat(chat_model, req.message))

@app.get(f"{API_PREFIX}/model-info")
def model_info(chat_model: ChatModel = Depends(get_chat_model)):
    return chat_core.model_info(chat_model)
