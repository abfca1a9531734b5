import json
import os
import time
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, Optional

LOG_JSON = os.getenv("LOG_JSON", "1") == "1"

COST_IN = float(os.getenv("COST_PER_1K_INPUT_USD", "0.0"))
COST_OUT = float(os.getenv("COST_PER_1K_OUTPUT_USD", "0.0"))

def now_ms() -> int:
    return int(time.time() * 1000)

def _jsonable(v: Any) -> Any:
    if isinstance(v, Enum):
        return v.value
    if is_dataclass(v) and not isinstance(v, type):
        return {k: _jsonable(x) for k, x in asdict(v).items()}
    if isinstance(v, dict):
        return {k: _jsonable(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set)):
        return [_jsonable(x) for x in v]
    return v

def log(event: str, **fields):
    payload = {"ts_ms": now_ms(), "event": event, **{k: _jsonable(v) for k, v in fields.items()}}
    if LOG_JSON:
        print(json.dumps(payload, ensure_ascii=False, default=str))
    else:
        print(payload)

def normalize_usage(usage: Any) -> dict:
    """
    usage 포멧을 통일:
        {"input_tokens": int, "output_tokens": int, "total_tokens": int}
    dict(usage_metadata / OpenAI usage) 또는 TokenUsage 둘 다 받는다.
    """
    if not usage:
        return {}

    if not isinstance(usage, dict):
        usage = {
            "input_tokens": getattr(usage, "input_token_count", None),
            "output_tokens": getattr(usage, "output_token_count", None),
            "total_tokens": getattr(usage, "total_token_count", None),
        }

    inp = usage.get("input_tokens") or usage.get("prompt_tokens") or 0
    out = usage.get("output_tokens") or usage.get("completion_tokens") or 0
    total = usage.get("total_tokens") or (inp + out)

    return {
        "input_tokens": int(inp),
        "output_tokens": int(out),
        "total_tokens": int(total),
    }

def estimate_cost_usd(usage: Optional[Dict[str, Any]]) -> float:
    u = normalize_usage(usage)
    inp = u.get("input_tokens", 0)
    out = u.get("output_tokens", 0)

    return (inp / 1000.0) * COST_IN + (out / 1000.0) * COST_OUT
