"""
Lexical/Structural Analyzer
===========================

Heuristic scoring of a learner's free-text message on four dimensions:
grammar, vocabulary, spelling and fluency. Every function here is pure and
deterministic; identical input always yields an identical result.

The heuristics are deliberately simple English-only rules. They never raise
for string input: non-English text or keyboard noise just scores low.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Pattern, Tuple

from .aggregator import aggregate, build_feedback
from .numeric import to_score
from .schemas import AccuracyResult, SubScores


logger = logging.getLogger(__name__)


# ============================================================================
# WORD LISTS
# ============================================================================

SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
NON_LETTER_RE = re.compile(r"[^a-z]")
UPPER_RE = re.compile(r"[A-Z]")
LETTER_RE = re.compile(r"[A-Za-z]")
SYMBOL_RE = re.compile(r"[^A-Za-z0-9\s]")

# Function words that say nothing about vocabulary range
STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
    "is", "am", "are", "was", "were", "be", "been", "being", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might", "must",
    "this", "that", "these", "those", "here", "there", "where", "when", "why", "how",
    "what", "who", "which",
})

MISSPELLINGS: Dict[str, str] = {
    "teh": "the",
    "recieve": "receive",
    "seperate": "separate",
    "occured": "occurred",
    "definately": "definitely",
    "neccessary": "necessary",
    "begining": "beginning",
    "acheive": "achieve",
    "buisness": "business",
    "thier": "their",
    "theyre": "they're",
    "dont": "don't",
    "cant": "can't",
    "wont": "won't",
}

APOSTROPHELESS_CONTRACTIONS: Tuple[str, ...] = (" dont ", " cant ", " wont ")

FILLER_PHRASES: Tuple[str, ...] = ("um", "uh", "like", "you know", "so", "actually", "kind of", "sort of")


# Counted as plain substrings: "so" inside "also" counts too
def _filler_pattern(phrase: str) -> Pattern[str]:
    body = r"\s+".join(re.escape(part) for part in phrase.split())
    return re.compile(body, re.IGNORECASE)


_FILLER_PATTERNS: Tuple[Pattern[str], ...] = tuple(_filler_pattern(p) for p in FILLER_PHRASES)


# ============================================================================
# TEXT HELPERS
# ============================================================================

def split_sentences(text: str) -> List[str]:
    """Split on runs of sentence punctuation, dropping empty fragments."""
    return [s for s in SENTENCE_SPLIT_RE.split(text) if s.strip()]


def tokenize(text: str) -> List[str]:
    return text.strip().lower().split()


def find_misspellings(text: str) -> List[str]:
    lowered = text.lower()
    return [word for word in MISSPELLINGS if word in lowered]


# ============================================================================
# DIMENSION SCORES
# ============================================================================

def grammar_score(sentences: List[str]) -> float:
    if not sentences:
        return 0.0
    score = 100.0
    for sentence in sentences:
        trimmed = sentence.strip()
        words = trimmed.split(" ")

        # Long stretch of text with hardly any word breaks reads as a fragment
        if len(trimmed) >= 10 and len(words) < 3:
            score -= 15

        if " i " in trimmed:
            score -= 10
        for contraction in APOSTROPHELESS_CONTRACTIONS:
            if contraction in trimmed:
                score -= 5

        # First-person agreement: "I am ..." passes, "I has ..." does not
        if len(words) > 2:
            first, second = words[0].lower(), words[1].lower()
            if first == "i" and not second.startswith("am"):
                score -= 10
    return score


def vocabulary_score(tokens: List[str]) -> float:
    if not tokens:
        return 0.0
    score = 100.0

    distinct = {t for t in tokens if len(t) > 2 and t not in STOP_WORDS}
    score += (len(distinct) / len(tokens)) * 50

    counts: Counter[str] = Counter()
    for token in tokens:
        clean = NON_LETTER_RE.sub("", token.lower())
        if len(clean) > 2:
            counts[clean] += 1
    overused = sum(1 for n in counts.values() if n > 3)
    score -= overused * 10
    return score


def spelling_score(text: str) -> float:
    score = 100.0
    score -= 20 * len(find_misspellings(text))

    letters = len(LETTER_RE.findall(text))
    if letters:
        capital_ratio = len(UPPER_RE.findall(text)) / letters
        if capital_ratio > 0.3:
            score -= (capital_ratio - 0.3) * 100

    if text:
        symbol_ratio = len(SYMBOL_RE.findall(text)) / len(text)
        if symbol_ratio > 0.1:
            score -= 15
    return score


def fluency_score(text: str, tokens: List[str], sentences: List[str]) -> float:
    if not sentences:
        return 0.0
    score = 100.0
    count = len(sentences)

    avg_len = len(tokens) / count
    if avg_len < 5:
        score -= 20
    elif avg_len > 30:
        score -= 15

    lengths = [len(s.split()) for s in sentences]
    short = sum(1 for n in lengths if n < 5)
    long = sum(1 for n in lengths if n > 20)
    if short > count * 0.5:
        score -= 15
    if long > count * 0.3:
        score -= 10

    for pattern in _FILLER_PATTERNS:
        score -= 5 * len(pattern.findall(text))

    run_ons = sum(1 for s in sentences if s.count(",") > 3)
    if run_ons > count * 0.3:
        score -= 10 * run_ons
    return score


# ============================================================================
# PUBLIC API
# ============================================================================

def score_message(message: str) -> SubScores:
    """Compute the four rounded, clamped sub-scores for ``message``."""
    text = (message or "").strip()
    if not text:
        return SubScores(grammar=0, vocabulary=0, spelling=0, fluency=0)
    tokens = tokenize(text)
    sentences = split_sentences(text)
    return SubScores(
        grammar=to_score(grammar_score(sentences)),
        vocabulary=to_score(vocabulary_score(tokens)),
        spelling=to_score(spelling_score(text)),
        fluency=to_score(fluency_score(text, tokens, sentences)),
    )


def analyze(message: str, ai_response: Optional[str] = None) -> AccuracyResult:
    """Score a learner message and attach feedback.

    Args:
        message: The learner's raw text.
        ai_response: The tutor turn the learner replied to. Accepted so callers
            can pass the whole exchange; scoring looks at the learner text only.

    Returns:
        An immutable AccuracyResult. Empty or whitespace-only input gives the
        all-zero result with no feedback.
    """
    if not message or not message.strip():
        return AccuracyResult.empty()

    scores = score_message(message)
    overall = aggregate(scores.grammar, scores.vocabulary, scores.spelling, scores.fluency)
    feedback, errors, suggestions = build_feedback(scores, overall, message)
    logger.debug(
        "analyzed message: overall=%s grammar=%s vocabulary=%s spelling=%s fluency=%s",
        overall, scores.grammar, scores.vocabulary, scores.spelling, scores.fluency,
    )
    return AccuracyResult(
        overall=overall,
        grammar=scores.grammar,
        vocabulary=scores.vocabulary,
        spelling=scores.spelling,
        fluency=scores.fluency,
        feedback=feedback,
        errors=errors,
        suggestions=suggestions,
    )


__all__ = [
    "STOP_WORDS",
    "MISSPELLINGS",
    "FILLER_PHRASES",
    "split_sentences",
    "tokenize",
    "find_misspellings",
    "grammar_score",
    "vocabulary_score",
    "spelling_score",
    "fluency_score",
    "score_message",
    "analyze",
]
