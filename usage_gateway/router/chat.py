from fastapi import APIRouter, Depends

from core.dependencies import enforce_token_quota, get_ai_service, get_recorder
from core.security import Principal
from schemas.ai import ChatRequest, ChatResponse
from service.ai_service import AIService
from service.feature_service import run_metered
from service.usage_service import UsageRecorder

router = APIRouter()

SYSTEM_PROMPT = "You are a helpful AI assistant. Provide clear, concise, and helpful responses."


@router.post("/", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    principal: Principal = Depends(enforce_token_quota),
    ai: AIService = Depends(get_ai_service),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """
    전체 파이프라인:
    1. JWT 인증 + 월간 토큰 쿼터 (enforce_token_quota)
    2. AI 호출 (모델 폴백 포함)
    3. 사용량 기록 (best-effort)
    """
    result = await run_metered(
        ai, recorder, principal.user_id,
        interaction_type="chat",
        prompt=request.message,
        system_prompt=SYSTEM_PROMPT,
        model=request.model,
        max_tokens=request.max_tokens,
        temperature=request.temperature,
    )

    return ChatResponse(
        content=result.content,
        model=result.model,
        tokens_used=result.tokens_used,
        cost=result.cost,
        fallback_used=result.fallback_used,
    )
