import time
import uuid
from dataclasses import dataclass
from typing import Mapping

REQUEST_ID_HEADER = "X-Request-ID"

@dataclass
class Timer:
    t0: float

    @classmethod
    def start(cls):
        return cls(time.perf_counter())

    def ms(self) -> int:
        return int((time.perf_counter() - self.t0) * 1000)

def ensure_request_id(rid: str | None) -> str:
    return rid or str(uuid.uuid4())

def request_id_from(headers: Mapping[str, str]) -> str:
    # 클라이언트가 보낸 X-Request-ID가 있으면 그대로 이어받는다
    return ensure_request_id(headers.get(REQUEST_ID_HEADER))
