"""
사용량 집계 / 쿼터 / 기록 서비스 테스트
"""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from models.usage import UsageRecord
from repository import usage_repo
from schemas.usage import UsageEvent
from service.usage_service import (
    RateLimiter,
    UsageMetricsAggregator,
    UsageRecorder,
    month_start,
)

# 고정 시각: 2026년 3월 15일 12:00 UTC
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
MARCH_START = datetime(2026, 3, 1, tzinfo=timezone.utc)


def new_user() -> str:
    return f"user_{uuid.uuid4().hex[:8]}"


def event(tokens: int, cost: float = 0.0, interaction_type: str = "chat") -> UsageEvent:
    return UsageEvent(model="test-model", tokens_used=tokens, cost=cost, interaction_type=interaction_type)


async def insert_at(db, user_id: str, tokens: int, created_at: datetime) -> UsageRecord:
    record = UsageRecord(
        user_id=user_id,
        model_used="test-model",
        tokens_used=tokens,
        cost=Decimal("0"),
        interaction_type="chat",
        created_at=created_at,
    )
    return await usage_repo.create(db, record)


def broken_session() -> MagicMock:
    """모든 쿼리/커밋이 실패하는 세션"""
    session = MagicMock(spec=AsyncSession)
    failure = OperationalError("SELECT 1", {}, Exception("connection refused"))
    session.execute.side_effect = failure
    session.commit.side_effect = failure
    return session


# ===== 월 경계 =====

def test_월_시작_계산():
    assert month_start(FIXED_NOW) == MARCH_START


def test_월_시작_계산_1일_자정():
    assert month_start(MARCH_START) == MARCH_START


# ===== Aggregator =====

@pytest.mark.asyncio
async def test_기록_없는_유저는_전체_쿼터(db):
    aggregator = UsageMetricsAggregator(db, monthly_limit=1000)
    metrics = await aggregator.get_user_metrics(new_user())

    assert metrics.total_tokens == 0
    assert metrics.total_interactions == 0
    assert metrics.total_cost == Decimal("0")
    assert metrics.remaining_tokens == 1000
    assert metrics.monthly_limit == 1000


@pytest.mark.asyncio
async def test_토큰_합계는_입력_순서와_무관(db):
    user_id = new_user()
    recorder = UsageRecorder(db)
    for tokens in (70, 5, 300, 0, 25):
        await recorder.record_usage(user_id, event(tokens, cost=0.01))

    metrics = await UsageMetricsAggregator(db, monthly_limit=1000).get_user_metrics(user_id)
    assert metrics.total_tokens == 400
    assert metrics.total_interactions == 5
    assert metrics.total_cost == Decimal("0.05")
    assert metrics.remaining_tokens == 600


@pytest.mark.asyncio
async def test_다른_유저_기록은_집계에서_제외(db):
    mine, other = new_user(), new_user()
    recorder = UsageRecorder(db)
    await recorder.record_usage(mine, event(100))
    await recorder.record_usage(other, event(900))

    metrics = await UsageMetricsAggregator(db, monthly_limit=1000).get_user_metrics(mine)
    assert metrics.total_tokens == 100


@pytest.mark.asyncio
async def test_월_시작_시각_기록은_포함_직전은_제외(db):
    user_id = new_user()
    await insert_at(db, user_id, 10, MARCH_START)
    await insert_at(db, user_id, 500, MARCH_START - timedelta(microseconds=1))

    aggregator = UsageMetricsAggregator(db, monthly_limit=1000, clock=lambda: FIXED_NOW)
    metrics = await aggregator.get_user_metrics(user_id)

    assert metrics.total_tokens == 10
    assert metrics.total_interactions == 1


@pytest.mark.asyncio
async def test_로컬_타임존_월_경계(db):
    """서버가 UTC+9일 때 3월 1일 00:00(+09:00)은 2월 28일 15:00 UTC"""
    kst = timezone(timedelta(hours=9))
    user_id = new_user()
    await insert_at(db, user_id, 42, datetime(2026, 2, 28, 15, 0, tzinfo=timezone.utc))
    await insert_at(db, user_id, 7, datetime(2026, 2, 28, 14, 59, 59, tzinfo=timezone.utc))

    aggregator = UsageMetricsAggregator(
        db, monthly_limit=1000, clock=lambda: datetime(2026, 3, 2, 9, 0, tzinfo=kst)
    )
    metrics = await aggregator.get_user_metrics(user_id)
    assert metrics.total_tokens == 42


@pytest.mark.asyncio
async def test_남은_토큰은_0_아래로_내려가지_않음(db):
    user_id = new_user()
    await UsageRecorder(db).record_usage(user_id, event(1500))

    metrics = await UsageMetricsAggregator(db, monthly_limit=1000).get_user_metrics(user_id)
    assert metrics.total_tokens == 1500
    assert metrics.remaining_tokens == 0


@pytest.mark.asyncio
async def test_빈_user_id_거절(db):
    with pytest.raises(ValueError):
        await UsageMetricsAggregator(db, monthly_limit=1000).get_user_metrics("")


@pytest.mark.asyncio
async def test_저장소_장애시_전체_쿼터로_대체():
    aggregator = UsageMetricsAggregator(broken_session(), monthly_limit=1000)
    metrics = await aggregator.get_user_metrics(new_user())

    assert metrics.total_tokens == 0
    assert metrics.remaining_tokens == 1000


@pytest.mark.asyncio
async def test_저장소_장애시_최근_기록은_빈_목록():
    aggregator = UsageMetricsAggregator(broken_session(), monthly_limit=1000)
    assert await aggregator.get_recent_interactions(new_user()) == []


@pytest.mark.asyncio
async def test_최근_기록은_최신순(db):
    user_id = new_user()
    await insert_at(db, user_id, 1, FIXED_NOW - timedelta(days=2))
    await insert_at(db, user_id, 2, FIXED_NOW - timedelta(days=1))
    await insert_at(db, user_id, 3, FIXED_NOW)

    recent = await UsageMetricsAggregator(db, monthly_limit=1000).get_recent_interactions(user_id, limit=2)
    assert [r.tokens_used for r in recent] == [3, 2]


# ===== Rate Limiter =====

@pytest.mark.asyncio
async def test_한도_미만이면_허용(db):
    user_id = new_user()
    await UsageRecorder(db).record_usage(user_id, event(999))

    decision = await RateLimiter(UsageMetricsAggregator(db, monthly_limit=1000)).check_rate_limit(user_id)
    assert decision.allowed is True
    assert decision.remaining_tokens == 1


@pytest.mark.asyncio
async def test_정확히_한도에_도달하면_거절(db):
    user_id = new_user()
    await UsageRecorder(db).record_usage(user_id, event(1000))

    decision = await RateLimiter(UsageMetricsAggregator(db, monthly_limit=1000)).check_rate_limit(user_id)
    assert decision.allowed is False
    assert decision.remaining_tokens == 0


@pytest.mark.asyncio
async def test_400씩_세번이면_거절_남은_토큰_0(db):
    user_id = new_user()
    recorder = UsageRecorder(db)
    limiter = RateLimiter(UsageMetricsAggregator(db, monthly_limit=1000))

    for expected_remaining in (600, 200):
        await recorder.record_usage(user_id, event(400))
        decision = await limiter.check_rate_limit(user_id)
        assert decision.allowed is True
        assert decision.remaining_tokens == expected_remaining

    await recorder.record_usage(user_id, event(400))
    decision = await limiter.check_rate_limit(user_id)
    assert decision.allowed is False
    assert decision.remaining_tokens == 0


@pytest.mark.asyncio
async def test_저장소_장애시_허용():
    limiter = RateLimiter(UsageMetricsAggregator(broken_session(), monthly_limit=1000))
    decision = await limiter.check_rate_limit(new_user())

    assert decision.allowed is True
    assert decision.remaining_tokens == 1000


@pytest.mark.asyncio
async def test_집계기_예외시_허용():
    class ExplodingAggregator:
        monthly_limit = 500

        async def get_user_metrics(self, user_id):
            raise RuntimeError("boom")

    decision = await RateLimiter(ExplodingAggregator()).check_rate_limit(new_user())
    assert decision.allowed is True
    assert decision.remaining_tokens == 500


@pytest.mark.asyncio
async def test_월_한도는_설정값을_따름(db):
    user_id = new_user()
    await UsageRecorder(db).record_usage(user_id, event(1500))

    decision = await RateLimiter(UsageMetricsAggregator(db, monthly_limit=5000)).check_rate_limit(user_id)
    assert decision.allowed is True
    assert decision.remaining_tokens == 3500


# ===== Recorder =====

@pytest.mark.asyncio
async def test_같은_기록_두번이면_두건_토큰_두배(db):
    user_id = new_user()
    recorder = UsageRecorder(db)

    first = await recorder.record_usage(user_id, event(250))
    second = await recorder.record_usage(user_id, event(250))

    assert first.ok and second.ok
    assert first.value.id != second.value.id

    metrics = await UsageMetricsAggregator(db, monthly_limit=1000).get_user_metrics(user_id)
    assert metrics.total_tokens == 500
    assert metrics.total_interactions == 2


@pytest.mark.asyncio
async def test_텔레메트리_필드_저장(db):
    user_id = new_user()
    result = await UsageRecorder(db).record_usage(user_id, UsageEvent(
        model="test-model",
        tokens_used=12,
        cost=0.5,
        interaction_type="education",
        prompt="what is a derivative?",
        response_time_ms=321,
        status="completed",
    ))

    record = result.value
    assert record.prompt == "what is a derivative?"
    assert record.response_time_ms == 321
    assert record.status == "completed"
    assert record.interaction_type == "education"
    assert record.created_at is not None


@pytest.mark.asyncio
async def test_저장소_장애시_기록은_예외없이_실패_결과():
    session = broken_session()
    result = await UsageRecorder(session).record_usage(new_user(), event(10))

    assert result.ok is False
    assert isinstance(result.error, OperationalError)
    session.rollback.assert_awaited_once()


def test_음수_토큰은_입력_단계에서_거절():
    with pytest.raises(ValueError):
        UsageEvent(model="m", tokens_used=-1, cost=0, interaction_type="chat")


def test_음수_비용은_입력_단계에서_거절():
    with pytest.raises(ValueError):
        UsageEvent(model="m", tokens_used=1, cost=-0.1, interaction_type="chat")


def test_무한대_비용은_입력_단계에서_거절():
    with pytest.raises(ValueError):
        UsageEvent(model="m", tokens_used=1, cost=float("inf"), interaction_type="chat")


def test_INTEGER_범위를_넘는_토큰은_입력_단계에서_거절():
    with pytest.raises(ValueError):
        UsageEvent(model="m", tokens_used=10**20, cost=0, interaction_type="chat")


@pytest.mark.asyncio
async def test_저장소_밖_예외도_기록은_실패_결과로():
    session = MagicMock(spec=AsyncSession)
    session.commit.side_effect = OverflowError("Python int too large to convert to SQLite INTEGER")

    result = await UsageRecorder(session).record_usage(new_user(), event(10))

    assert result.ok is False
    assert isinstance(result.error, OverflowError)
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_비정상_비용_합계에도_토큰_쿼터는_유지(db):
    """이미 저장된 Infinity 비용이 있어도 집계는 실패하지 않고 한도 판단은 토큰 기준"""
    user_id = new_user()
    await UsageRecorder(db).record_usage(user_id, event(1200))
    await usage_repo.create(db, UsageRecord(
        user_id=user_id,
        model_used="test-model",
        tokens_used=0,
        cost=Decimal("Infinity"),
        interaction_type="chat",
    ))

    metrics = await UsageMetricsAggregator(db, monthly_limit=1000).get_user_metrics(user_id)
    assert metrics.total_tokens == 1200
    assert metrics.total_cost == Decimal("0")
    assert metrics.remaining_tokens == 0

    decision = await RateLimiter(UsageMetricsAggregator(db, monthly_limit=1000)).check_rate_limit(user_id)
    assert decision.allowed is False
