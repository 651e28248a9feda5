"""
pytest 공통 설정
"""
import sys
import os
import asyncio
import tempfile
import uuid
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# 설정 로드 전에 테스트용 SQLite 파일 지정
_DB_PATH = os.path.join(tempfile.gettempdir(), f"usage_gateway_test_{uuid.uuid4().hex[:8]}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ.setdefault("MONTHLY_TOKEN_LIMIT", "1000")

import pytest
import pytest_asyncio
from starlette.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from fastapi import FastAPI
from core.database import Base, get_db
from core.config import settings
from core.dependencies import get_ai_service, get_redis
from core.errors import register_exception_handlers
from core.security import create_access_token
from models.usage import UsageRecord  # noqa: F401  (metadata 등록)
from router import accessibility, business, chat, education, story, usage, user
from service.ai_service import AIResult

# ===== NullPool 엔진: 매 요청마다 새 커넥션 (테스트 전용) =====
test_engine = create_async_engine(settings.database_url, poolclass=NullPool)
test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


async def _create_tables():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

asyncio.run(_create_tables())


async def override_get_db():
    async with test_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


class FakeRedis:
    """activity 카운터 테스트용 최소 구현 (incrby / expire / get)"""

    def __init__(self):
        self.store: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incrby(self, key: str, amount: int) -> int:
        self.store[key] = self.store.get(key, 0) + amount
        return self.store[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def get(self, key: str):
        value = self.store.get(key)
        return str(value) if value is not None else None


class FakeAIService:
    """AI 백엔드 대신 고정 응답: 호출 내역을 기록"""

    def __init__(self, tokens_used: int = 120, cost: float = 0.002):
        self.tokens_used = tokens_used
        self.cost = cost
        self.calls: list[dict] = []

    async def generate(self, prompt, system_prompt=None, model=None, max_tokens=1000, temperature=0.7):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "model": model,
            "max_tokens": max_tokens,
        })
        return AIResult(
            content=f"echo: {prompt[:20]}",
            model=model or "test-model",
            tokens_used=self.tokens_used,
            cost=self.cost,
            response_time_ms=5,
        )


fake_redis = FakeRedis()
fake_ai = FakeAIService()


async def override_get_redis():
    return fake_redis


async def override_get_ai_service():
    return fake_ai


# ===== 테스트 전용 앱 (미들웨어/lifespan 없이) =====
test_app = FastAPI()
register_exception_handlers(test_app)
test_app.include_router(usage.router, prefix="/api/usage", tags=["Usage"])
test_app.include_router(user.router, prefix="/api/user", tags=["User"])
test_app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
test_app.include_router(education.router, prefix="/api/education", tags=["Education"])
test_app.include_router(story.router, prefix="/api/story", tags=["Story"])
test_app.include_router(business.router, prefix="/api/business", tags=["Business"])
test_app.include_router(accessibility.router, prefix="/api/accessibility", tags=["Accessibility"])

test_app.dependency_overrides[get_db] = override_get_db
test_app.dependency_overrides[get_redis] = override_get_redis
test_app.dependency_overrides[get_ai_service] = override_get_ai_service


@pytest.fixture
def client():
    """동기식 테스트 클라이언트"""
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def user_id():
    return f"user_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def auth_headers(user_id):
    """인증된 헤더: 매 테스트마다 새 유저"""
    token = create_access_token(user_id)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def db():
    async with test_session_factory() as session:
        yield session


def pytest_sessionfinish(session, exitstatus):
    asyncio.run(test_engine.dispose())
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)
