from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.logger import get_logger

logger = get_logger("errors")


class QuotaExceededError(Exception):
    """쿼터 초과: 429로 변환됨. payload는 응답 본문에 그대로 병합"""

    def __init__(self, **payload):
        super().__init__("Rate limit exceeded")
        self.payload = payload


class AIServiceError(Exception):
    """AI 백엔드 호출 실패 (모든 폴백 모델 실패 포함)"""


async def quota_exceeded_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": "Rate limit exceeded", **exc.payload},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # FastAPI 기본값은 422지만 잘못된 요청 본문은 400으로 응답
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request data", "details": jsonable_encoder(exc.errors())},
    )


async def ai_service_error_handler(request: Request, exc: AIServiceError) -> JSONResponse:
    logger.error(
        f"AI request failed: {exc}",
        extra={"extra_data": {"path": request.url.path}},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Failed to generate response", "details": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(QuotaExceededError, quota_exceeded_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(AIServiceError, ai_service_error_handler)
