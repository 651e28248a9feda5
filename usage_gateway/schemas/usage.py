from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# usage_records 의 INTEGER 컬럼 상한 (32bit)
MAX_INT = 2**31 - 1
# usage_records.cost 는 Numeric(12, 6)
MAX_COST = 999_999.999999


class CamelModel(BaseModel):
    """요청/응답 JSON은 camelCase, 파이썬 쪽은 snake_case"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,    # SQLAlchemy 모델 객체를 Pydantic 모델로 자동 변환
        protected_namespaces=(),
    )


class UsageEvent(CamelModel):
    """Usage Recorder 입력: AI 호출 1건"""
    model: str = Field(..., min_length=1, max_length=100)
    tokens_used: int = Field(..., ge=0, le=MAX_INT)
    cost: float = Field(0.0, ge=0, le=MAX_COST, allow_inf_nan=False)
    interaction_type: str = Field(..., min_length=1, max_length=50)
    # 이하 관찰용 텔레메트리
    prompt: str | None = None
    response_time_ms: int | None = Field(None, ge=0, le=MAX_INT)
    status: str | None = "completed"


class UsageRecordCreate(CamelModel):
    """POST /api/usage/stats 요청 본문"""
    model: str = Field(..., min_length=1, max_length=100)
    tokens_used: int = Field(..., ge=0, le=MAX_INT)
    cost: float = Field(..., ge=0, le=MAX_COST, allow_inf_nan=False)
    interaction_type: str = Field(..., min_length=1, max_length=50)


class UserMetricsResponse(CamelModel):
    total_tokens: int
    total_cost: float
    total_interactions: int
    monthly_limit: int
    remaining_tokens: int


class UsageRecordResponse(CamelModel):
    id: str
    model_used: str
    tokens_used: int
    cost: float
    interaction_type: str
    prompt: str | None = None
    response_time_ms: int | None = None
    status: str | None = None
    created_at: datetime


class UsageStatsResponse(CamelModel):
    metrics: UserMetricsResponse
    recent_interactions: list[UsageRecordResponse]


class SuccessResponse(CamelModel):
    success: bool = True


class ActivityRequest(CamelModel):
    """POST /api/user/usage 요청 본문"""
    activity_type: str = Field("ai_generation", min_length=1, max_length=50)
    increment: int = Field(1, ge=1, le=100)


class ActivityUsage(CamelModel):
    activity_type: str
    tier: str
    used: int
    limit: int
    remaining: int
    allowed: bool
