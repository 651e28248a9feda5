from fastapi import APIRouter, Depends

from core.config import settings
from core.dependencies import get_aggregator, get_recorder
from core.security import Principal, get_current_principal
from schemas.usage import (
    SuccessResponse,
    UsageEvent,
    UsageRecordCreate,
    UsageRecordResponse,
    UsageStatsResponse,
    UserMetricsResponse,
)
from service.usage_service import UsageMetricsAggregator, UsageRecorder

router = APIRouter()


@router.get("/stats", response_model=UsageStatsResponse)
async def get_usage_stats(
    principal: Principal = Depends(get_current_principal),
    aggregator: UsageMetricsAggregator = Depends(get_aggregator),
):
    """이번 달 사용량 + 최근 기록 조회"""
    metrics = await aggregator.get_user_metrics(principal.user_id)
    recent = await aggregator.get_recent_interactions(
        principal.user_id, settings.recent_interactions_limit
    )

    return UsageStatsResponse(
        metrics=UserMetricsResponse(
            total_tokens=metrics.total_tokens,
            total_cost=float(metrics.total_cost),
            total_interactions=metrics.total_interactions,
            monthly_limit=metrics.monthly_limit,
            remaining_tokens=metrics.remaining_tokens,
        ),
        recent_interactions=[
            UsageRecordResponse(
                id=record.id,
                model_used=record.model_used,
                tokens_used=record.tokens_used,
                cost=float(record.cost),
                interaction_type=record.interaction_type,
                prompt=record.prompt,
                response_time_ms=record.response_time_ms,
                status=record.status,
                created_at=record.created_at,
            )
            for record in recent
        ],
    )


@router.post("/stats", response_model=SuccessResponse)
async def record_usage(
    data: UsageRecordCreate,
    principal: Principal = Depends(get_current_principal),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """클라이언트가 직접 사용량 1건을 기록 (실패해도 success: 기록은 best-effort)"""
    await recorder.record_usage(principal.user_id, UsageEvent(
        model=data.model,
        tokens_used=data.tokens_used,
        cost=data.cost,
        interaction_type=data.interaction_type,
    ))
    return SuccessResponse()
