from datetime import datetime, timezone
from redis.asyncio import Redis
from core.config import settings

# 일일 카운터 키 TTL (초): 2일 (날짜 경계 여유분 포함)
ACTIVITY_TTL = 2 * 24 * 60 * 60
FALLBACK_TIER = "free"


def _make_activity_key(user_id: str, now: datetime | None = None) -> str:
    day = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    return f"activity:{user_id}:{day}"


def limit_for_tier(tier: str, limits: dict[str, int] | None = None) -> int:
    limits = limits if limits is not None else settings.activity_limits
    return limits.get(tier, limits[FALLBACK_TIER])


def _report(activity_type: str, tier: str, used: int, limit: int) -> dict:
    return {
        "activity_type": activity_type,
        "tier": tier,
        "used": used,
        "limit": limit,
        "remaining": max(0, limit - used),
        "allowed": used <= limit,
    }


async def check_and_increment(
    redis: Redis,
    user_id: str,
    tier: str,
    activity_type: str = "ai_generation",
    increment: int = 1,
) -> dict:
    """
    일일 요청 카운터 증가 + 한도 확인

    INCRBY는 원자적 연산이라 동시 요청에도 카운트가 누락되지 않음
    (월간 토큰 쿼터와 달리 증가와 판단이 한 번에 일어남)

    Returns:
        {"activity_type": "ai_generation", "tier": "free",
         "used": 21, "limit": 20, "remaining": 0, "allowed": False}
    """
    key = _make_activity_key(user_id)

    current = await redis.incrby(key, increment)

    # 첫 요청이면 TTL 설정
    if current == increment:
        await redis.expire(key, ACTIVITY_TTL)

    return _report(activity_type, tier, current, limit_for_tier(tier))


async def get_activity_usage(redis: Redis, user_id: str, tier: str) -> dict:
    """오늘 사용량 조회 (증가 없음)"""
    used = await redis.get(_make_activity_key(user_id))
    used = int(used) if used else 0
    return _report("ai_generation", tier, used, limit_for_tier(tier))
