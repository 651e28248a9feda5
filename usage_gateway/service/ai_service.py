"""
AI 백엔드 호출 서비스: OpenAI 호환 /chat/completions

흐름:
1. 비활성 모델이면 즉시 거절
2. 요청 모델 → fallback_models 순서로 시도
3. 성공한 응답의 usage.total_tokens 로 비용 계산
4. 모두 실패하면 AIServiceError
"""
import time
from dataclasses import dataclass, field

import httpx

from core.config import Settings
from core.errors import AIServiceError
from core.logger import get_logger

logger = get_logger("ai")


@dataclass
class AIResult:
    content: str
    model: str
    tokens_used: int
    cost: float
    response_time_ms: int = 0
    fallback_used: bool = False
    fallback_chain: list[str] = field(default_factory=list)


def estimate_cost(tokens_used: int, model: str, prices_per_1k: dict[str, float]) -> float:
    """1K 토큰 단가 기준 비용 (단가 없는 모델은 무료)"""
    return round(tokens_used / 1000 * prices_per_1k.get(model, 0.0), 6)


class AIService:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.settings = settings

    def _candidates(self, model: str) -> list[str]:
        chain = [model]
        for candidate in self.settings.fallback_models:
            if candidate not in chain and candidate not in self.settings.disabled_models:
                chain.append(candidate)
        return chain

    async def _complete(
        self, model: str, messages: list[dict], max_tokens: int, temperature: float
    ) -> dict:
        response = await self.client.post(
            "/chat/completions",
            json={
                "model": model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
        )
        response.raise_for_status()
        return response.json()

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> AIResult:
        model = model or self.settings.default_model
        if model in self.settings.disabled_models:
            raise AIServiceError(f"{model} is currently disabled")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        tried: list[str] = []
        last_error: Exception | None = None
        for candidate in self._candidates(model):
            tried.append(candidate)
            start = time.perf_counter()
            try:
                data = await self._complete(candidate, messages, max_tokens, temperature)
            except (httpx.HTTPError, ValueError) as exc:
                # ValueError: JSON 디코딩 실패
                last_error = exc
                logger.warning(
                    f"{candidate} failed, trying next model",
                    extra={"extra_data": {"model": candidate, "error": repr(exc)}},
                )
                continue

            choices = data.get("choices") or [{}]
            content = (choices[0].get("message") or {}).get("content") or ""
            tokens_used = int((data.get("usage") or {}).get("total_tokens") or 0)
            return AIResult(
                content=content,
                model=candidate,
                tokens_used=tokens_used,
                cost=estimate_cost(tokens_used, candidate, self.settings.model_prices_per_1k),
                response_time_ms=int((time.perf_counter() - start) * 1000),
                fallback_used=len(tried) > 1,
                fallback_chain=tried,
            )

        raise AIServiceError(f"All AI models failed. Last error: {last_error!r}")
