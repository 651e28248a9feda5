from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from core.config import settings

# 1. Async 엔진 생성
#    - echo: 실행되는 SQL을 콘솔에 출력 (개발용)
#    - pool_size / max_overflow: SQLite에는 의미가 없으므로 서버 DB에서만 지정
_pool_options = {} if settings.database_url.startswith("sqlite") else {
    "pool_size": 5,
    "max_overflow": 10,
}

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
    **_pool_options,
)


# 2. 세션 팩토리
#    - expire_on_commit=False: commit 후에도 객체 속성에 접근 가능
#      (True면 commit 후 속성 접근 시 LazyLoad → async에서 에러 발생)
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


# 3. Base 클래스: 모든 모델이 상속받는 부모
class Base(DeclarativeBase):
    pass


# 4. DB 세션 DI (Dependency Injection)
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """앱 시작 시 테이블 생성 (마이그레이션 없이 create_all)"""
    # 모델 모듈을 import해야 metadata에 테이블이 등록됨
    import models.usage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
