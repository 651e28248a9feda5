from fastapi import APIRouter, Depends

from core.dependencies import enforce_token_quota, get_ai_service, get_recorder
from core.security import Principal
from schemas.ai import DocumentAnalysisRequest, DocumentAnalysisResponse
from service.ai_service import AIService
from service.feature_service import run_metered
from service.usage_service import UsageRecorder

router = APIRouter()

ANALYSIS_INSTRUCTIONS = {
    "summary": "Summarize the document in a few short paragraphs.",
    "sentiment": "Describe the overall sentiment and tone of the document.",
    "key-points": "List the key points of the document as bullet points.",
    "recommendations": "Give concrete, actionable recommendations based on the document.",
    "risk-analysis": "Identify risks, liabilities and red flags in the document.",
    "action-items": "Extract every action item with its owner and deadline if stated.",
    "full": "Provide a summary, key points, sentiment and recommendations.",
    "comprehensive": "Provide a summary, key points, risks, action items and recommendations.",
}


@router.post("/analyze-document", response_model=DocumentAnalysisResponse)
async def analyze_document(
    request: DocumentAnalysisRequest,
    principal: Principal = Depends(enforce_token_quota),
    ai: AIService = Depends(get_ai_service),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """비즈니스 문서 분석"""
    system_prompt = (
        f"You are a business analyst reviewing a {request.type} document. "
        f"{ANALYSIS_INSTRUCTIONS[request.analysis_type]}"
    )
    if request.focus_areas:
        system_prompt += f" Focus on: {', '.join(request.focus_areas)}."

    result = await run_metered(
        ai, recorder, principal.user_id,
        interaction_type="business_analysis",
        prompt=request.content,
        system_prompt=system_prompt,
        model=request.model,
        max_tokens=2000,
        temperature=0.3,
    )
    return DocumentAnalysisResponse(
        analysis=result.content,
        analysis_type=request.analysis_type,
        model=result.model,
        tokens_used=result.tokens_used,
        cost=result.cost,
        fallback_used=result.fallback_used,
    )
