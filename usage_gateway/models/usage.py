import uuid
from decimal import Decimal
from sqlalchemy import String, Integer, Numeric, Text, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from models.base import CreatedAtMixin
from core.database import Base


class UsageRecord(CreatedAtMixin, Base):
    """
    AI 호출 1건의 사용량 기록

    - 추가만 가능 (수정/삭제 경로 없음)
    - 모든 조회는 user_id + created_at 범위로 수행
    - prompt / response_time_ms / status 는 관찰용 텔레메트리 (쿼터 계산에 쓰지 않음)
    """
    __tablename__ = "usage_records"
    __table_args__ = (
        CheckConstraint("tokens_used >= 0", name="ck_usage_records_tokens_non_negative"),
        CheckConstraint("cost >= 0", name="ck_usage_records_cost_non_negative"),
        # 월간 집계 쿼리: WHERE user_id = ? AND created_at >= ?
        Index("ix_usage_records_user_created", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # 외부 IdP의 사용자 ID (users 테이블 없음)
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    model_used: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    tokens_used: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 6),
        nullable=False,
        default=Decimal("0"),
    )

    # "chat", "education", "story_generation" ...
    interaction_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)
