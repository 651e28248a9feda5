import logging
import json
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

from core.config import settings

# 요청별 추적 ID / 인증된 유저 ID
# (같은 요청 내에서는 어디서든 동일한 값에 접근 가능)
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


class JsonFormatter(logging.Formatter):
    """
    사용량/쿼터 로그를 JSON 한 줄로 출력

    예: {"timestamp": "...", "level": "WARNING", "message": "usage record failed, dropping",
         "logger": "usage", "request_id": "abc-123", "user_id": "user_1", "tokens_used": 400}

    user_id 는 인증을 통과한 요청에서만 붙는다.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(),
        }

        user_id = user_id_var.get()
        if user_id is not None:
            log_data["user_id"] = user_id

        # 호출부 extra_data 가 우선 (예: 다른 유저 대상 작업)
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["error"] = self.formatException(record.exc_info)

        # Decimal 비용, datetime 등은 문자열로
        return json.dumps(log_data, ensure_ascii=False, default=str)


def get_logger(name: str) -> logging.Logger:
    """JSON 로거 생성 (레벨은 LOG_LEVEL 설정)"""
    logger = logging.getLogger(name)

    # 중복 핸들러 방지
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(settings.log_level.upper())

    return logger


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]
