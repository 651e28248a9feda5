from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from core.config import settings
from core.logger import user_id_var

# HTTPBearer: Authorization 헤더에서 "Bearer <token>" 자동 추출
# auto_error=False: 헤더가 없을 때 403 대신 직접 401을 내려주기 위함
security_schema = HTTPBearer(auto_error=False)

DEFAULT_TIER = "free"


@dataclass(frozen=True)
class Principal:
    """인증된 요청 주체: 모든 사용량 조회/기록은 user_id 기준"""
    user_id: str
    tier: str = DEFAULT_TIER


def create_access_token(user_id: str, tier: str = DEFAULT_TIER) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": user_id,
        "tier": tier,
        "exp": expire,
        "type": "access"
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_schema),
) -> Principal:
    """JWT 접근 토큰을 검증하고 Principal을 반환합니다."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(
            credentials.credentials, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    token_type = payload.get("type", "access")
    if not user_id or token_type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 이후 이 요청의 로그에 user_id 가 붙음
    user_id_var.set(user_id)
    return Principal(user_id=user_id, tier=payload.get("tier") or DEFAULT_TIER)
