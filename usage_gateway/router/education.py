from fastapi import APIRouter, Depends

from core.dependencies import enforce_token_quota, get_ai_service, get_recorder
from core.security import Principal
from schemas.ai import EducationAskRequest, EducationAskResponse, QuizRequest, QuizResponse
from service.ai_service import AIService
from service.feature_service import run_metered
from service.usage_service import UsageRecorder

router = APIRouter()


def tutor_prompt(difficulty: str, subject: str | None) -> str:
    lines = [
        "You are an expert AI tutor specializing in adaptive learning. Your role is to:",
        f"1. Provide clear, educational explanations appropriate for {difficulty} level",
        "2. Break down complex concepts into digestible parts",
        "3. Use examples and analogies to enhance understanding",
        "4. Encourage critical thinking with follow-up questions",
    ]
    if subject:
        lines.append(f"5. Focus on the subject area: {subject}")
    lines.append("Always be encouraging, patient, and supportive.")
    return "\n".join(lines)


@router.post("/ask", response_model=EducationAskResponse)
async def ask(
    request: EducationAskRequest,
    principal: Principal = Depends(enforce_token_quota),
    ai: AIService = Depends(get_ai_service),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """학습 질문 답변"""
    result = await run_metered(
        ai, recorder, principal.user_id,
        interaction_type="education",
        prompt=request.question,
        system_prompt=tutor_prompt(request.difficulty, request.subject),
        model=request.model,
        max_tokens=1500,
    )
    return EducationAskResponse(
        answer=result.content,
        difficulty=request.difficulty,
        model=result.model,
        tokens_used=result.tokens_used,
        cost=result.cost,
        fallback_used=result.fallback_used,
    )


@router.post("/generate-quiz", response_model=QuizResponse)
async def generate_quiz(
    request: QuizRequest,
    principal: Principal = Depends(enforce_token_quota),
    ai: AIService = Depends(get_ai_service),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """주제별 퀴즈 생성"""
    prompt = (
        f"Create a {request.difficulty} quiz about \"{request.topic}\" with "
        f"{request.question_count} {request.question_type} questions. "
        "Include the correct answer and a short explanation for each question."
    )
    result = await run_metered(
        ai, recorder, principal.user_id,
        interaction_type="education_quiz",
        prompt=prompt,
        system_prompt=tutor_prompt(request.difficulty, request.subject),
        model=request.model,
        max_tokens=2000,
    )
    return QuizResponse(
        quiz=result.content,
        topic=request.topic,
        question_count=request.question_count,
        model=result.model,
        tokens_used=result.tokens_used,
        cost=result.cost,
        fallback_used=result.fallback_used,
    )
