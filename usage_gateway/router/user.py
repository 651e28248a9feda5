from fastapi import APIRouter, Depends, HTTPException, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from core.dependencies import get_redis
from core.errors import QuotaExceededError
from core.logger import get_logger
from core.security import Principal, get_current_principal
from schemas.usage import ActivityRequest, ActivityUsage
from service.activity_service import check_and_increment, get_activity_usage

router = APIRouter()
logger = get_logger("user")


@router.get("/usage")
async def get_usage(
    principal: Principal = Depends(get_current_principal),
    redis: Redis = Depends(get_redis),
):
    """오늘의 요청 카운터 조회 (티어별 한도)"""
    try:
        report = await get_activity_usage(redis, principal.user_id, principal.tier)
    except RedisError:
        logger.exception("activity usage lookup failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch usage stats",
        )
    return {"usage": ActivityUsage(**report).model_dump(by_alias=True)}


@router.post("/usage")
async def check_usage(
    data: ActivityRequest,
    principal: Principal = Depends(get_current_principal),
    redis: Redis = Depends(get_redis),
):
    """요청 카운터 증가 + 티어 한도 확인 (초과 시 429)"""
    try:
        report = await check_and_increment(
            redis, principal.user_id, principal.tier, data.activity_type, data.increment
        )
    except RedisError:
        logger.exception("activity usage check failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check rate limit",
        )

    body = ActivityUsage(**report).model_dump(by_alias=True)
    if not report["allowed"]:
        raise QuotaExceededError(**body)
    return {"success": True, **body}
