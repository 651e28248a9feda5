from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatedAtMixin:
    """
    불변(append-only) 레코드용 생성 시각

    사용법:
        class UsageRecord(CreatedAtMixin, Base):
            __tablename__ = "usage_records"
            ...

    - updated_at이 없음: 한 번 쓰면 수정하지 않는 테이블
    - 앱 서버에서 UTC로 찍음 → 월 경계 비교를 DB 종류와 무관하게 UTC로 통일
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
