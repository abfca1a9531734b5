import os
from prometheus_client import Counter, Histogram, Gauge

APP_NAME = os.getenv("APP_NAME", "chat_model_demo")

REQ_COUNT = Counter(
    f"{APP_NAME}_requests_total",
    "Total requests",
    ["endpoint", "status"],
)

REQ_LATENCY_MS = Histogram(
    f"{APP_NAME}_request_latency_ms",
    "Request latency in milliseconds",
    ["endpoint"],
    buckets=(50, 100, 200, 400, 800, 1500, 3000, 5000, 8000, 12000, 20000, 40000),
)

INFLIGHT = Gauge(
    f"{APP_NAME}_inflight",
    "In-flight requests",
    ["endpoint"],
)

MODEL_CALLS = Counter(
    f"{APP_NAME}_model_calls_total",
    "Chat model calls seen by listeners",
    ["provider", "model", "outcome"],   # outcome: ok/error
)

TOKENS = Counter(
    f"{APP_NAME}_tokens_total",
    "Token counts",
    ["model", "kind"],    # kind: input/output/total
)

COST_USD = Counter(
    f"{APP_NAME}_cost_usd_total",
    "Estimated cost in USD",
    ["model"],
)
