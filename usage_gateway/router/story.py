from fastapi import APIRouter, Depends

from core.dependencies import enforce_token_quota, get_ai_service, get_recorder
from core.security import Principal
from schemas.ai import StoryRequest, StoryResponse
from service.ai_service import AIService
from service.feature_service import run_metered
from service.usage_service import UsageRecorder

router = APIRouter()

# 길이별 최대 토큰
LENGTH_TOKENS = {"short": 800, "medium": 1500, "long": 3000}

SYSTEM_PROMPT = (
    "You are a creative storyteller. Write vivid, coherent stories with "
    "well-developed characters and a clear beginning, middle and end."
)


def build_story_prompt(request: StoryRequest) -> str:
    parts = [f"Write a {request.length} story based on this idea: {request.prompt}"]
    if request.genre:
        parts.append(f"Genre: {request.genre}")
    if request.tone:
        parts.append(f"Tone: {request.tone}")
    if request.style:
        parts.append(f"Writing style: {request.style}")
    if request.setting:
        parts.append(f"Setting: {request.setting}")
    if request.characters:
        parts.append(f"Characters: {', '.join(request.characters)}")
    return "\n".join(parts)


@router.post("/generate-story", response_model=StoryResponse)
async def generate_story(
    request: StoryRequest,
    principal: Principal = Depends(enforce_token_quota),
    ai: AIService = Depends(get_ai_service),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """스토리 생성"""
    result = await run_metered(
        ai, recorder, principal.user_id,
        interaction_type="story_generation",
        prompt=build_story_prompt(request),
        system_prompt=SYSTEM_PROMPT,
        model=request.model,
        max_tokens=LENGTH_TOKENS[request.length],
        temperature=0.9,
    )
    return StoryResponse(
        story=result.content,
        length=request.length,
        model=result.model,
        tokens_used=result.tokens_used,
        cost=result.cost,
        fallback_used=result.fallback_used,
    )
