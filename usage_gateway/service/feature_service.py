from schemas.usage import UsageEvent
from service.ai_service import AIResult, AIService
from service.usage_service import UsageRecorder

# 텔레메트리로 남기는 프롬프트 길이 상한
MAX_LOGGED_PROMPT = 2000


async def run_metered(
    ai: AIService,
    recorder: UsageRecorder,
    user_id: str,
    *,
    interaction_type: str,
    prompt: str,
    system_prompt: str | None = None,
    model: str | None = None,
    max_tokens: int = 1000,
    temperature: float = 0.7,
) -> AIResult:
    """
    AI 호출 + 사용량 기록

    쿼터 확인은 라우터 의존성(enforce_token_quota)에서 이미 끝난 상태.
    기록 실패는 UsageRecorder가 삼키므로 응답은 항상 전달됨.
    """
    result = await ai.generate(
        prompt,
        system_prompt=system_prompt,
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
    )

    await recorder.record_usage(user_id, UsageEvent(
        model=result.model,
        tokens_used=result.tokens_used,
        cost=result.cost,
        interaction_type=interaction_type,
        prompt=prompt[:MAX_LOGGED_PROMPT],
        response_time_ms=result.response_time_ms,
        status="completed",
    ))
    return result
