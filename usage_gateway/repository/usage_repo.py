from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from models.usage import UsageRecord

# cost 컬럼 정밀도 (Numeric(12, 6))
COST_QUANTUM = Decimal("0.000001")


def _to_cost(value) -> Decimal:
    """DB 합계를 Decimal로 정규화. NaN/Infinity 는 0으로 취급 (토큰 합계와 쿼터 판단은 영향 없음)"""
    cost = Decimal(str(value or 0))
    if not cost.is_finite():
        return Decimal("0")
    return cost.quantize(COST_QUANTUM)


@dataclass(frozen=True)
class UsageTotals:
    """기간 합계 (토큰, 비용, 건수)"""
    tokens: int = 0
    cost: Decimal = Decimal("0")
    interactions: int = 0


async def create(db: AsyncSession, record: UsageRecord) -> UsageRecord:
    """사용량 레코드 1건 저장 (append-only)"""
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def sum_since(db: AsyncSession, user_id: str, since: datetime) -> UsageTotals:
    """since 이후(포함) 유저의 토큰/비용 합계와 건수"""
    result = await db.execute(
        select(
            func.coalesce(func.sum(UsageRecord.tokens_used), 0),
            func.coalesce(func.sum(UsageRecord.cost), 0),
            func.count(UsageRecord.id),
        )
        .where(UsageRecord.user_id == user_id)
        .where(UsageRecord.created_at >= since)
    )
    tokens, cost, count = result.one()
    return UsageTotals(
        tokens=int(tokens or 0),
        cost=_to_cost(cost),
        interactions=int(count or 0),
    )


async def find_recent(db: AsyncSession, user_id: str, limit: int = 10) -> list[UsageRecord]:
    """유저의 최근 사용 기록 (최신순)"""
    result = await db.execute(
        select(UsageRecord)
        .where(UsageRecord.user_id == user_id)
        .order_by(UsageRecord.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
