from fastapi import FastAPI
from contextlib import asynccontextmanager
from core.dependencies import init_connections, close_connections
from core.database import engine, init_db
from core.errors import register_exception_handlers
from core.metrics import RequestMetricsMiddleware, metrics_store
from router import accessibility, business, chat, education, story, usage, user

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await init_db()
        await init_connections()
        yield
    finally:
        await close_connections()
        # DB 연결 풀 정리
        await engine.dispose()

app = FastAPI(
    title="AI Workspace Usage Gateway",
    description="월간 토큰 쿼터 기반 AI 기능 게이트웨이",
    version="0.1.0",
    lifespan=lifespan
)

# 미들웨어 등록 (모든 요청을 자동 계측)
app.add_middleware(RequestMetricsMiddleware)
register_exception_handlers(app)

app.include_router(usage.router, prefix="/api/usage", tags=["Usage"])
app.include_router(user.router, prefix="/api/user", tags=["User"])
app.include_router(chat.router, prefix="/api/chat", tags=["Chat"])
app.include_router(education.router, prefix="/api/education", tags=["Education"])
app.include_router(story.router, prefix="/api/story", tags=["Story"])
app.include_router(business.router, prefix="/api/business", tags=["Business"])
app.include_router(accessibility.router, prefix="/api/accessibility", tags=["Accessibility"])

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/api/metrics", tags=["Monitoring"])
async def get_metrics():
    """실시간 메트릭 조회: 총 요청 수, 응답 시간, 상태코드별 분포 등"""
    return metrics_store.summary()
