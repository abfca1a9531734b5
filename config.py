import os

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

DEFAULT_MODEL_ID = "tngtech/deepseek-r1t2-chimera:free"


def _opt_float(name: str):
    v = os.getenv(name)
    return float(v) if v not in (None, "") else None


def _opt_int(name: str):
    v = os.getenv(name)
    return int(v) if v not in (None, "") else None


# 모델 클라이언트
CHAT_PROVIDER = os.getenv("CHAT_PROVIDER", "openai")    # openai | google_genai
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://openrouter.ai/api/v1")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

CHAT_MODEL_NAME = os.getenv("CHAT_MODEL_NAME", DEFAULT_MODEL_ID)
CHAT_TEMPERATURE = _opt_float("CHAT_TEMPERATURE")
CHAT_MAX_OUTPUT_TOKENS = _opt_int("CHAT_MAX_OUTPUT_TOKENS")
CHAT_RESPONSE_FORMAT = os.getenv("CHAT_RESPONSE_FORMAT")   # text | json
CHAT_MODEL_CAPABILITIES = [
    c.strip().upper() for c in os.getenv("CHAT_MODEL_CAPABILITIES", "").split(",") if c.strip()
]

# SDK 내부 동작 (facade 레이어에서는 재시도하지 않는다)
LLM_TIMEOUT_SEC = float(os.getenv("LLM_TIMEOUT_SEC", "60"))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "2"))

# 라우트별 고정 모델
ADVANCED_MODEL_NAME = os.getenv("ADVANCED_MODEL_NAME", DEFAULT_MODEL_ID)
DIRECT_MODEL_NAME = os.getenv("DIRECT_MODEL_NAME", DEFAULT_MODEL_ID)
DIRECT_TEMPERATURE = 0.8

DEFAULT_SYSTEM_MESSAGE = "You are a helpful assistant"

# advanced 라우트 파라미터 기본값
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 500
DEFAULT_TOP_P = 0.9
DEFAULT_FREQUENCY_PENALTY = 1.5
DEFAULT_PRESENCE_PENALTY = 1.5
