"""
사용량 계측 + 월간 쿼터 서비스

구성:
  UsageMetricsAggregator  이번 달 토큰/비용 합계 → UserMetrics
  RateLimiter             remaining_tokens > 0 이면 허용
  UsageRecorder           AI 호출 성공 후 레코드 1건 추가

저장소(DB) 장애 정책:
  읽기 실패 → "사용량 0, 쿼터 전체 남음"으로 대체 (fail-open)
  쓰기 실패 → 로그만 남기고 버림 (응답 전달을 막지 않음)

check 와 record 는 별도 요청/트랜잭션이라 같은 유저의 동시 요청이
둘 다 통과할 수 있음 → 월 한도를 약간 넘는 것은 허용되는 동작.
"""
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import get_logger
from models.usage import UsageRecord
from repository import usage_repo
from repository.usage_repo import UsageTotals
from schemas.usage import UsageEvent

logger = get_logger("usage")

T = TypeVar("T")

# 저장소 장애로 취급하는 예외 (그 외 예외는 버그이므로 그대로 전파)
STORE_ERRORS = (SQLAlchemyError, OSError, TimeoutError)


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """저장소 호출 결과: 성공 값 또는 실패 사유"""
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, fallback: T) -> T:
        return self.value if self.ok else fallback


async def attempt(
    call: Callable[[], Awaitable[T]],
    errors: tuple[type[Exception], ...] = STORE_ERRORS,
) -> StoreResult[T]:
    """저장소 호출을 실행하고 errors 에 해당하는 예외를 StoreResult로 감싼다"""
    try:
        return StoreResult(value=await call())
    except errors as exc:
        return StoreResult(error=exc)


@dataclass(frozen=True)
class UserMetrics:
    total_tokens: int
    total_cost: Decimal
    total_interactions: int
    monthly_limit: int
    remaining_tokens: int

    @classmethod
    def from_totals(cls, totals: UsageTotals, monthly_limit: int) -> "UserMetrics":
        return cls(
            total_tokens=totals.tokens,
            total_cost=totals.cost,
            total_interactions=totals.interactions,
            monthly_limit=monthly_limit,
            remaining_tokens=max(0, monthly_limit - totals.tokens),
        )


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining_tokens: int


def local_now() -> datetime:
    """서버 로컬 타임존 기준 현재 시각 (tz-aware)"""
    return datetime.now().astimezone()


def month_start(now: datetime) -> datetime:
    """now가 속한 달의 1일 00:00:00 (now와 같은 타임존)"""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class UsageMetricsAggregator:
    """이번 달(서버 로컬 기준) 사용량 집계"""

    def __init__(
        self,
        db: AsyncSession,
        monthly_limit: int,
        clock: Callable[[], datetime] = local_now,
    ):
        self.db = db
        self.monthly_limit = monthly_limit
        self.clock = clock

    def window_start(self) -> datetime:
        """집계 구간 시작: DB 비교를 위해 UTC로 변환"""
        return month_start(self.clock()).astimezone(timezone.utc)

    async def get_user_metrics(self, user_id: str) -> UserMetrics:
        if not user_id:
            raise ValueError("user_id must not be empty")

        since = self.window_start()
        result = await attempt(lambda: usage_repo.sum_since(self.db, user_id, since))
        if not result.ok:
            logger.warning(
                "usage metrics unavailable, falling back to full quota",
                extra={"extra_data": {"user_id": user_id, "error": repr(result.error)}},
            )
        return UserMetrics.from_totals(result.unwrap_or(UsageTotals()), self.monthly_limit)

    async def get_recent_interactions(self, user_id: str, limit: int = 10) -> list[UsageRecord]:
        result = await attempt(lambda: usage_repo.find_recent(self.db, user_id, limit))
        if not result.ok:
            logger.warning(
                "recent interactions unavailable",
                extra={"extra_data": {"user_id": user_id, "error": repr(result.error)}},
            )
        return result.unwrap_or([])


class RateLimiter:
    """월간 토큰 한도 정책: 버킷/윈도우 없이 호출 시점의 합계만 본다"""

    def __init__(self, aggregator: UsageMetricsAggregator):
        self.aggregator = aggregator

    async def check_rate_limit(self, user_id: str) -> RateLimitDecision:
        try:
            metrics = await self.aggregator.get_user_metrics(user_id)
        except Exception:
            # 판단 불가 → 허용 (인프라 장애로 모든 AI 기능이 막히지 않도록)
            logger.exception(
                "rate limit check failed, allowing request",
                extra={"extra_data": {"user_id": user_id}},
            )
            limit = self.aggregator.monthly_limit
            return RateLimitDecision(allowed=True, remaining_tokens=limit)

        return RateLimitDecision(
            allowed=metrics.remaining_tokens > 0,
            remaining_tokens=metrics.remaining_tokens,
        )


class UsageRecorder:
    """AI 호출 1건 = 레코드 1건. 중복 제거 없음 (재시도하면 두 번 기록됨)"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_usage(self, user_id: str, event: UsageEvent) -> StoreResult[UsageRecord]:
        record = UsageRecord(
            user_id=user_id,
            model_used=event.model,
            tokens_used=event.tokens_used,
            cost=Decimal(str(event.cost)),
            interaction_type=event.interaction_type,
            prompt=event.prompt,
            response_time_ms=event.response_time_ms,
            status=event.status,
        )

        # 기록은 응답 전달을 막지 않음: 드라이버 변환 오류 등 모든 예외를 실패 결과로
        result = await attempt(lambda: usage_repo.create(self.db, record), errors=(Exception,))
        if not result.ok:
            logger.warning(
                "usage record failed, dropping",
                extra={"extra_data": {
                    "user_id": user_id,
                    "model": event.model,
                    "tokens_used": event.tokens_used,
                    "interaction_type": event.interaction_type,
                    "error": repr(result.error),
                }},
            )
            await self._rollback()
        return result

    async def _rollback(self) -> None:
        rollback = await attempt(self.db.rollback, errors=(Exception,))
        if not rollback.ok:
            logger.warning(
                "rollback after failed usage record also failed",
                extra={"extra_data": {"error": repr(rollback.error)}},
            )
