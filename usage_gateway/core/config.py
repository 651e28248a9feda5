from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

class Settings(BaseSettings):
    # JWT 설정 (Clerk 등 외부 IdP가 발급한 토큰을 같은 키로 검증)
    jwt_secret: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60

    # Redis: 티어별 일일 요청 카운터
    redis_url: str = "redis://redis:6379"

    # 월간 토큰 쿼터 (유저 필드가 아니라 환경별 설정값)
    monthly_token_limit: int = 1000
    recent_interactions_limit: int = 10

    # 티어별 일일 요청 한도
    activity_limits: dict[str, int] = {"free": 20, "pro": 1000}

    # AI 백엔드 (OpenAI 호환 chat/completions)
    ai_base_url: str = "https://openrouter.ai/api/v1"
    ai_api_key: str = ""
    ai_timeout_seconds: float = 120.0

    # 모델 이름 / 폴백 순서
    default_model: str = "openai/gpt-oss-120b:free"
    fallback_models: list[str] = [
        "google/gemini-2.5-pro",
        "google/gemini-2.5-flash",
        "openai/gpt-oss-120b:free",
    ]
    disabled_models: list[str] = ["openai/gpt-5"]

    # 1K 토큰당 가격 (없으면 무료 취급)
    model_prices_per_1k: dict[str, float] = {
        "google/gemini-2.5-pro": 0.00125,
        "google/gemini-2.5-flash": 0.0003,
    }

    # OpenRouter 랭킹용 헤더
    app_url: str = "http://localhost:3000"
    app_name: str = "AI Workspace"

    # Pydantic v2 방식: Config 내부 클래스 대신 model_config 사용
    model_config = SettingsConfigDict(
        # config.py -> core -> usage_gateway -> 루트 아래의 .env 찾기
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,     # 환경변수 대소문자 무시
        protected_namespaces=(),  # 'model_' 접두사 경고 무시
    )

    # 로그 레벨 (LOG_LEVEL 환경변수)
    log_level: str = "INFO"

    # Database
    database_url: str
    database_echo: bool = False


# 프로세스당 하나: 서비스 객체는 이 값을 주입받아 생성
settings = Settings()
