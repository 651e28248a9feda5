import time
from collections import defaultdict
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.logger import get_logger, generate_request_id, request_id_var

logger = get_logger("metrics")

# 헬스체크/메트릭 조회는 집계에서 제외
UNTRACKED_PATHS = {"/health", "/api/metrics"}


class MetricsStore:
    """요청 메트릭: 프로세스 내 인메모리 집계 (관찰용, 쿼터 판단에는 쓰지 않음)"""

    def __init__(self):
        self.total_requests = 0
        self.by_status = defaultdict(int)     # {200: 42, 429: 3, 500: 1}
        self.by_path = defaultdict(int)        # {"POST /api/chat/": 30}
        self.rate_limited = 0                  # 429 응답 수
        self.total_duration_ms = 0.0
        self.slowest = []

    def record(self, method: str, path: str, status: int, duration_ms: float):
        self.total_requests += 1
        self.by_status[status] += 1
        self.by_path[f"{method} {path}"] += 1
        self.total_duration_ms += duration_ms
        if status == 429:
            self.rate_limited += 1

        # 가장 느린 요청 Top 5 유지
        self.slowest.append({
            "duration_ms": round(duration_ms, 1),
            "method": method,
            "path": path,
            "status": status,
        })
        self.slowest.sort(key=lambda x: x["duration_ms"], reverse=True)
        self.slowest = self.slowest[:5]

    def summary(self) -> dict:
        avg = round(self.total_duration_ms / self.total_requests, 1) if self.total_requests else 0
        return {
            "total_requests": self.total_requests,
            "avg_response_time_ms": avg,
            "rate_limited": self.rate_limited,
            "by_status": dict(self.by_status),
            "by_path": dict(self.by_path),
            "slowest_top5": self.slowest,
        }


metrics_store = MetricsStore()


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """
    모든 HTTP 요청을 계측하는 미들웨어

    1. request_id 부여 (클라이언트가 X-Request-ID를 보내면 그대로 사용)
    2. 응답 시간 측정 + 메트릭 집계
    3. JSON 로그 출력
    """

    def __init__(self, app, store: MetricsStore | None = None):
        super().__init__(app)
        self.store = store or metrics_store

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = request.headers.get("X-Request-ID") or generate_request_id()
        request_id_var.set(req_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            # 처리되지 않은 예외도 500으로 집계한 뒤 그대로 전파
            self._observe(request, 500, start)
            raise

        self._observe(request, response.status_code, start)
        response.headers["X-Request-ID"] = req_id
        return response

    def _observe(self, request: Request, status: int, start: float) -> None:
        path = request.url.path
        if path in UNTRACKED_PATHS:
            return

        duration_ms = (time.perf_counter() - start) * 1000
        self.store.record(
            method=request.method,
            path=path,
            status=status,
            duration_ms=duration_ms,
        )
        logger.info(
            f"{request.method} {path} {status} {duration_ms:.0f}ms",
            extra={"extra_data": {
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 1),
            }}
        )
