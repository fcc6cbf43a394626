import re
from typing import Sequence, Dict, Any

_METRIC_WORDS = re.compile(r"\b(years?|months?|days?|hours?|million|thousand|clients?|projects?)\b", re.IGNORECASE)
_COMPANY_WORDS = re.compile(r"\b(our|we|company|team|organization)\b", re.IGNORECASE)
_BULLETS = re.compile(r"[•\-*]|^\d+\.", re.MULTILINE)


def _length_score(word_count: int) -> int:
    if word_count < 20:
        return 5
    if word_count < 50:
        return 10
    if word_count < 100:
        return 15
    if word_count <= 500:
        return 20
    return 15


def _source_score(sources: int) -> int:
    if sources >= 3:
        return 25
    if sources == 2:
        return 20
    if sources == 1:
        return 15
    return 5


def calculate_trust_score(response: str, question: str, sources: Sequence[Any] = ()) -> Dict[str, Any]:
    """Эвристическая оценка качества ответа от 0 до 100"""
    words = response.split()
    question_words = [
        w for w in re.sub(r"[^\w\s]", "", question.lower()).split()
        if len(w) > 3
    ]
    lowered = response.lower()
    matched = [w for w in question_words if w in lowered]

    breakdown = {
        "length": _length_score(len(words)),
        "keyword_coverage": round(len(matched) / len(question_words) * 25) if question_words else 0,
        "sources": _source_score(len(sources)),
        "structure": (
            (5 if re.search(r"[.!?]", response) else 0)
            + (5 if len(response.split("\n\n")) > 1 else 0)
            + (5 if _BULLETS.search(response) else 0)
        ),
        "specificity": (
            (4 if re.search(r"\d", response) else 0)
            + (4 if "%" in response else 0)
            + (4 if _METRIC_WORDS.search(response) else 0)
            + (3 if _COMPANY_WORDS.search(response) else 0)
        ),
    }

    score = max(0, min(100, sum(breakdown.values())))
    if score >= 75:
        label = "high"
    elif score >= 50:
        label = "medium"
    else:
        label = "low"

    return {"score": score, "label": label, "breakdown": breakdown}
