"""Weighted combination of sub-scores and the feedback that goes with them."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from .numeric import round_half_up, to_score
from .schemas import SubScores


WEIGHTS: Dict[str, float] = {
    "grammar": 0.30,
    "vocabulary": 0.30,
    "spelling": 0.20,
    "fluency": 0.20,
}

GRAMMAR_THRESHOLD = 70
VOCABULARY_THRESHOLD = 70
SPELLING_THRESHOLD = 80
FLUENCY_THRESHOLD = 70

PRAISE_ABOVE = 85
ENCOURAGE_ABOVE = 70


def aggregate(grammar: float, vocabulary: float, spelling: float, fluency: float) -> int:
    total = (
        grammar * WEIGHTS["grammar"]
        + vocabulary * WEIGHTS["vocabulary"]
        + spelling * WEIGHTS["spelling"]
        + fluency * WEIGHTS["fluency"]
    )
    return to_score(total)


def closing_remark(overall: int) -> str:
    if overall > PRAISE_ABOVE:
        return "Great job! Your English is very clear and well-structured."
    if overall > ENCOURAGE_ABOVE:
        return "Good effort! Keep practicing to improve your accuracy."
    return "Keep working on your English skills. Practice makes perfect!"


def build_feedback(
    scores: SubScores,
    overall: int,
    message: str,
) -> Tuple[Tuple[str, ...], Tuple[str, ...], Tuple[str, ...]]:
    """Return (feedback, errors, suggestions) for a scored message.

    Per-dimension advice comes first in a fixed order (grammar, vocabulary,
    spelling, fluency), followed by exactly one closing remark.
    """
    feedback: List[str] = []
    errors: List[str] = []
    suggestions: List[str] = []

    if scores.grammar < GRAMMAR_THRESHOLD:
        feedback.append("Try to use complete sentences with proper subject-verb agreement.")
        if " i " in message:
            errors.append("Use 'I' instead of ' i '")
            suggestions.append("Capitalize 'I' when referring to yourself.")

    if scores.vocabulary < VOCABULARY_THRESHOLD:
        feedback.append("Try using more varied vocabulary words in your responses.")
        suggestions.append("Read more to expand your vocabulary.")

    if scores.spelling < SPELLING_THRESHOLD:
        feedback.append("Check your spelling carefully before sending messages.")
        suggestions.append("Use a spell checker or dictionary when unsure.")

    if scores.fluency < FLUENCY_THRESHOLD:
        feedback.append("Try to speak in complete thoughts and avoid filler words.")
        suggestions.append("Take time to think before responding.")

    feedback.append(closing_remark(overall))
    return tuple(feedback), tuple(errors), tuple(suggestions)


def average_skill(values: Iterable[Optional[float]]) -> int:
    present = [v for v in values if v is not None]
    if not present:
        return 0
    return round_half_up(sum(present) / len(present))


__all__ = [
    "WEIGHTS",
    "aggregate",
    "closing_remark",
    "build_feedback",
    "average_skill",
]
