import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from pydantic import BaseModel, Field, field_validator

from app.core.config import settings
from app.domains.projects.trust import calculate_trust_score

logger = logging.getLogger(__name__)

FALLBACK_TEMPLATE = (
    "Our team will provide a detailed response to this requirement. "
    "We have reviewed the question \"{question}\" and will confirm specifics, "
    "timelines and supporting documentation during the review stage."
)


class AnswerServiceReply(BaseModel):
    """Ответ внешнего сервиса; оценка доверия приводится к диапазону 0..100"""
    response: Optional[str] = None
    trust_score: Optional[float] = Field(None, allow_inf_nan=False)
    sources: List[str] = Field(default_factory=list)

    @field_validator("trust_score")
    @classmethod
    def clamp_trust_score(cls, v):
        if v is None:
            return None
        return max(0, min(100, int(round(v))))


@dataclass
class GeneratedAnswer:
    response: str
    trust_score: int
    sources: List[str] = field(default_factory=list)
    fallback: bool = False


class AnswerGenerator:
    """Клиент внешнего сервиса генерации ответов.

    Сервис может быть медленным или недоступным: при любой ошибке
    возвращается запасной ответ с эвристической оценкой доверия.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url if base_url is not None else settings.answer_service_url
        self.api_key = api_key if api_key is not None else settings.answer_service_api_key
        self.timeout = timeout if timeout is not None else settings.answer_service_timeout
        self.transport = transport

    def fallback(self, question_text: str) -> GeneratedAnswer:
        response = FALLBACK_TEMPLATE.format(question=question_text.strip()[:200])
        score = calculate_trust_score(response, question_text)["score"]
        return GeneratedAnswer(response=response, trust_score=score, fallback=True)

    async def generate(self, question_text: str, context: Optional[str] = None) -> GeneratedAnswer:
        """Генерация ответа на вопрос"""
        if not self.base_url:
            return self.fallback(question_text)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {"question": question_text}
        if context:
            payload["context"] = context

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.base_url, json=payload, headers=headers)
                response.raise_for_status()
                reply = AnswerServiceReply.model_validate(response.json())
        except httpx.TimeoutException as e:
            logger.warning(f"Answer service timed out, using fallback: {e}")
            return self.fallback(question_text)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Answer service failed, using fallback: {e}")
            return self.fallback(question_text)

        text = (reply.response or "").strip()
        if not text:
            logger.warning("Answer service returned an empty response, using fallback")
            return self.fallback(question_text)

        trust_score = reply.trust_score
        if trust_score is None:
            trust_score = calculate_trust_score(text, question_text, reply.sources)["score"]

        return GeneratedAnswer(response=text, trust_score=int(trust_score), sources=reply.sources)
