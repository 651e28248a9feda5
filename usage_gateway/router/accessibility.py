from fastapi import APIRouter, Depends

from core.dependencies import enforce_token_quota, get_ai_service, get_recorder
from core.security import Principal
from schemas.ai import SummarizeRequest, SummarizeResponse
from service.ai_service import AIService
from service.feature_service import run_metered
from service.usage_service import UsageRecorder

router = APIRouter()

SUMMARY_STYLES = {
    "brief": "Write a brief summary of two or three sentences.",
    "detailed": "Write a detailed summary that keeps every important point.",
    "action-items": "List the action items mentioned in the transcript.",
    "key-points": "List the key points of the transcript as bullet points.",
}


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(
    request: SummarizeRequest,
    principal: Principal = Depends(enforce_token_quota),
    ai: AIService = Depends(get_ai_service),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """음성 전사(transcript) 요약"""
    system_prompt = (
        "You summarize conversation transcripts for accessibility. "
        f"{SUMMARY_STYLES[request.summary_type]} Respond in language '{request.language}'."
    )
    if request.focus_areas:
        system_prompt += f" Focus on: {', '.join(request.focus_areas)}."

    result = await run_metered(
        ai, recorder, principal.user_id,
        interaction_type="accessibility_summary",
        prompt=request.transcript,
        system_prompt=system_prompt,
        model=request.model,
        max_tokens=1000,
        temperature=0.3,
    )
    return SummarizeResponse(
        summary=result.content,
        summary_type=request.summary_type,
        model=result.model,
        tokens_used=result.tokens_used,
        cost=result.cost,
        fallback_used=result.fallback_used,
    )
