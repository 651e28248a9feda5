import redis.asyncio as airedis
import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_db
from core.errors import QuotaExceededError
from core.logger import get_logger
from core.security import Principal, get_current_principal
from service.ai_service import AIService
from service.usage_service import UsageMetricsAggregator, RateLimiter, UsageRecorder

logger = get_logger("dependencies")

# 전역 클라이언트: lifespan에서 초기화/정리
_redis_client: airedis.Redis | None = None
_ai_client: httpx.AsyncClient | None = None

# === FastAPI Depends()용 함수 ===

async def get_redis() -> airedis.Redis:
    if _redis_client is None:
        raise RuntimeError("Redis가 초기화되지 않았습니다. 서버 시작을 확인하세요.")
    return _redis_client


async def get_ai_client() -> httpx.AsyncClient:
    if _ai_client is None:
        raise RuntimeError("AI 클라이언트가 초기화되지 않았습니다. 서버 시작을 확인하세요.")
    return _ai_client


# 서비스 객체는 요청마다 생성 (세션/설정을 주입)

async def get_aggregator(db: AsyncSession = Depends(get_db)) -> UsageMetricsAggregator:
    return UsageMetricsAggregator(db, monthly_limit=settings.monthly_token_limit)


async def get_rate_limiter(
    aggregator: UsageMetricsAggregator = Depends(get_aggregator),
) -> RateLimiter:
    return RateLimiter(aggregator)


async def get_recorder(db: AsyncSession = Depends(get_db)) -> UsageRecorder:
    return UsageRecorder(db)


async def get_ai_service(client: httpx.AsyncClient = Depends(get_ai_client)) -> AIService:
    return AIService(client, settings)


async def enforce_token_quota(
    principal: Principal = Depends(get_current_principal),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Principal:
    """AI 기능 공통 관문: 인증 → 월간 토큰 쿼터 확인 (초과 시 429)"""
    decision = await limiter.check_rate_limit(principal.user_id)
    if not decision.allowed:
        logger.info(
            "monthly token quota exceeded",
            extra={"extra_data": {"user_id": principal.user_id}},
        )
        raise QuotaExceededError(remainingTokens=decision.remaining_tokens)
    return principal


# === 수명주기 관리 (main.py의 lifespan에서 호출) ===

async def init_connections():
    global _redis_client, _ai_client

    _redis_client = airedis.from_url(
        settings.redis_url,
        decode_responses=True,  # bytes → str 자동 변환
    )
    _ai_client = httpx.AsyncClient(
        base_url=settings.ai_base_url,
        timeout=settings.ai_timeout_seconds,  # LLM 응답은 오래 걸릴 수 있음
        headers={
            "Authorization": f"Bearer {settings.ai_api_key}",
            "HTTP-Referer": settings.app_url,
            "X-Title": settings.app_name,
        },
    )

    # 연결 확인
    await _redis_client.ping()
    logger.info("Redis 연결 성공")
    logger.info("AI 클라이언트 준비 완료")


async def close_connections():
    global _redis_client, _ai_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
    if _ai_client:
        await _ai_client.aclose()
        _ai_client = None

    logger.info("모든 연결 종료")
