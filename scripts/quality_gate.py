import os, json, statistics, time
import requests

BASE = os.getenv("BASE_URL", "http://localhost:8000")
N = int(os.getenv("GATE_N", "3"))
MAX_P95_MS = int(os.getenv("GATE_MAX_P95_MS", "20000"))
MAX_ERR_RATE = float(os.getenv("GATE_MAX_ERR_RATE", "0.1"))

PREFIX = "/api/v1/chat"

# (method, path, body) - 6개 라우트 전부 한 바퀴
ROUTES = [
    ("POST", f"{PREFIX}/simple", {"message": "What is FastAPI? One sentence."}),
    ("POST", f"{PREFIX}/with-chat-messages", {"systemMessage": "You are terse.", "userMessage": "Define REST."}),
    ("POST", f"{PREFIX}/conversation", {"messages": [
        {"type": "system", "content": "You are a coding tutor"},
        {"type": "user", "content": "What is an ORM?"},
        {"type": "ai", "content": "An ORM maps objects to relational tables."},
        {"type": "user", "content": "Name one for Python."},
    ]}),
    ("POST", f"{PREFIX}/advanced", {"userMessage": "Write a haiku about coding", "temperature": 0.9, "maxTokens": 100}),
    ("POST", f"{PREFIX}/direct", {"message": "Hello AI"}),
    ("GET", f"{PREFIX}/model-info", None),
]

def main():
    latencies = []
    errors = 0
    total = 0

    for i in range(N):
        for method, path, body in ROUTES:
            total += 1
            t0 = time.time()
            r = requests.request(method, f"{BASE}{path}", json=body, timeout=120,
                                 headers={"X-Request-ID": f"gate-{int(time.time())}-{i}"})
            dt = int((time.time() - t0) * 1000)

            if r.status_code != 200:
                errors += 1
                print(json.dumps({"path": path, "status": r.status_code, "body": r.text[:300]}, ensure_ascii=False))
                continue

            data = r.json()
            if path.endswith("/model-info"):
                ok = "provider" in data
            else:
                ok = bool(data.get("aiResponse"))
            if not ok:
                errors += 1
                continue

            latencies.append(dt)

    if not latencies:
        raise SystemExit("GATE FAIL: no successful responses")

    p95 = statistics.quantiles(latencies, n=20)[18] if len(latencies) > 1 else latencies[0]
    err_rate = errors / total

    print(json.dumps({
        "n": total,
        "success": len(latencies),
        "errors": errors,
        "error_rate": err_rate,
        "p95_ms": p95
    }, ensure_ascii=False, indent=2))

    if p95 > MAX_P95_MS:
        raise SystemExit(f"GATE FAIL: p95 {p95}ms > {MAX_P95_MS}ms")
    if err_rate > MAX_ERR_RATE:
        raise SystemExit(f"GATE FAIL: error_rate {err_rate} > {MAX_ERR_RATE}")

if __name__ == '__main__':
    main()
