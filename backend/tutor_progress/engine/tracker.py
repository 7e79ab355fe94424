"""Per-session accuracy bookkeeping."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List

from .numeric import round_half_up
from .progression import apply_xp, level_info, xp_gain_for_turn
from .schemas import AccuracyResult, SessionAccuracyState, TurnOutcome


logger = logging.getLogger(__name__)


DEFAULT_WINDOW = 20
DEFAULT_QUALITY_THRESHOLD = 80
TREND_SPAN = 5


class SessionAccuracyTracker:
    """
    Folds each turn's overall score into running accuracy figures.

    One instance belongs to one learner conversation and must only be mutated
    by that conversation's handler (see ``sessions.SessionRegistry``).

    Attributes:
        window: How many recent scores feed the rolling accuracy.
        quality_threshold: Scores at or above this count as quality messages.
        total_xp: The learner's cumulative XP; only ever grows.
    """

    def __init__(
        self,
        window: int = DEFAULT_WINDOW,
        quality_threshold: int = DEFAULT_QUALITY_THRESHOLD,
        total_xp: int = 0,
    ) -> None:
        self.window: int = max(1, int(window))
        self.quality_threshold: int = quality_threshold
        self.total_xp: int = max(0, int(total_xp))
        self._recent: Deque[int] = deque(maxlen=self.window)
        self._all_scores: List[int] = []
        self._analyses: Deque[AccuracyResult] = deque(maxlen=self.window)
        self.quality_messages: int = 0

    # ------------------------------------------------------------------
    # Accuracy

    def record_turn(self, score: int) -> int:
        """Record one turn's overall score and return the lifetime accuracy."""
        clamped = max(0, min(100, round_half_up(score)))
        if clamped != score:
            logger.warning("Score %s outside 0..100, recorded as %s", score, clamped)

        self._recent.append(clamped)
        self._all_scores.append(clamped)
        if clamped >= self.quality_threshold:
            self.quality_messages += 1
        return self.current_accuracy

    @property
    def total_messages(self) -> int:
        return len(self._all_scores)

    @property
    def historical_scores(self) -> List[int]:
        return list(self._recent)

    @property
    def current_accuracy(self) -> int:
        if not self._all_scores:
            return 0
        return round_half_up(sum(self._all_scores) / len(self._all_scores))

    @property
    def rolling_accuracy(self) -> int:
        if not self._recent:
            return 0
        return round_half_up(sum(self._recent) / len(self._recent))

    def recent_trend(self) -> float:
        """Mean of the last five scores minus the mean of the five before them."""
        if len(self._all_scores) < TREND_SPAN:
            return 0.0
        recent = self._all_scores[-TREND_SPAN:]
        older = self._all_scores[-2 * TREND_SPAN:-TREND_SPAN]
        if not older:
            return 0.0
        return sum(recent) / len(recent) - sum(older) / len(older)

    def skill_breakdown(self) -> Dict[str, int]:
        if not self._analyses:
            return {"grammar": 0, "vocabulary": 0, "spelling": 0, "fluency": 0}
        count = len(self._analyses)
        return {
            "grammar": round_half_up(sum(a.grammar for a in self._analyses) / count),
            "vocabulary": round_half_up(sum(a.vocabulary for a in self._analyses) / count),
            "spelling": round_half_up(sum(a.spelling for a in self._analyses) / count),
            "fluency": round_half_up(sum(a.fluency for a in self._analyses) / count),
        }

    # ------------------------------------------------------------------
    # Full turn

    def process_turn(self, result: AccuracyResult, message_length: int) -> TurnOutcome:
        """Record an analysed message, award XP for it and re-derive the level."""
        self._analyses.append(result)
        accuracy = self.record_turn(result.overall)
        gained = xp_gain_for_turn(result.overall, message_length)
        applied = apply_xp(self.total_xp, gained)
        self.total_xp = applied.new_total_xp
        if applied.leveled_up:
            logger.info("Level up: %s -> %s", applied.old_level, applied.new_level)
        return TurnOutcome(
            accuracy=result,
            xp_gained=gained,
            current_accuracy=accuracy,
            xp=applied,
            level_info=level_info(self.total_xp),
        )

    def state(self) -> SessionAccuracyState:
        return SessionAccuracyState(
            historical_scores=tuple(self._recent),
            current_accuracy=self.current_accuracy,
            rolling_accuracy=self.rolling_accuracy,
            total_messages=self.total_messages,
            quality_messages=self.quality_messages,
            total_xp=self.total_xp,
        )

    def reset(self) -> None:
        """Start a new conversation. Cumulative XP belongs to the learner and is kept."""
        self._recent.clear()
        self._all_scores.clear()
        self._analyses.clear()
        self.quality_messages = 0


__all__ = ["SessionAccuracyTracker", "DEFAULT_WINDOW", "DEFAULT_QUALITY_THRESHOLD"]
