from typing import Literal
from pydantic import Field
from schemas.usage import CamelModel

Difficulty = Literal["beginner", "intermediate", "advanced"]


class AIUsageFields(CamelModel):
    """모든 AI 기능 응답에 공통으로 붙는 사용량 정보"""
    model: str
    tokens_used: int
    cost: float
    fallback_used: bool = False


# ─── Chat ───

class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1, max_length=4000)
    model: str | None = None
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(1000, ge=1, le=4000)


class ChatResponse(AIUsageFields):
    content: str


# ─── Education ───

class EducationAskRequest(CamelModel):
    question: str = Field(..., min_length=1, max_length=4000)
    difficulty: Difficulty = "intermediate"
    subject: str | None = None
    model: str | None = None


class EducationAskResponse(AIUsageFields):
    answer: str
    difficulty: Difficulty


class QuizRequest(CamelModel):
    topic: str = Field(..., min_length=1, max_length=200)
    difficulty: Difficulty = "intermediate"
    question_count: int = Field(5, ge=1, le=20)
    question_type: Literal["multiple-choice", "true-false", "short-answer", "mixed"] = "mixed"
    subject: str | None = None
    model: str | None = None


class QuizResponse(AIUsageFields):
    quiz: str
    topic: str
    question_count: int


# ─── Story ───

class StoryRequest(CamelModel):
    prompt: str = Field(..., min_length=1, max_length=1000)
    genre: str | None = None
    length: Literal["short", "medium", "long"] = "medium"
    style: str | None = None
    characters: list[str] = []
    setting: str | None = None
    tone: Literal["serious", "humorous", "dramatic", "mysterious", "romantic", "adventure"] | None = None
    model: str | None = None


class StoryResponse(AIUsageFields):
    story: str
    length: str


# ─── Business ───

class DocumentAnalysisRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=10000)
    type: Literal["contract", "report", "email", "proposal", "other"] = "other"
    analysis_type: Literal[
        "summary", "sentiment", "key-points", "recommendations", "full",
        "risk-analysis", "action-items", "comprehensive",
    ] = "full"
    focus_areas: list[str] = []
    model: str | None = None


class DocumentAnalysisResponse(AIUsageFields):
    analysis: str
    analysis_type: str


# ─── Accessibility ───

class SummarizeRequest(CamelModel):
    transcript: str = Field(..., min_length=1)
    summary_type: Literal["brief", "detailed", "action-items", "key-points"] = "brief"
    language: str = "en"
    focus_areas: list[str] = []
    model: str | None = None


class SummarizeResponse(AIUsageFields):
    summary: str
    summary_type: str
