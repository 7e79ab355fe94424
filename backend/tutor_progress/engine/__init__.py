"""Accuracy scoring and progression engine. Pure Python, no I/O."""

from .aggregator import WEIGHTS, aggregate, average_skill, build_feedback
from .analyzer import analyze, score_message
from .progression import (
    apply_xp,
    check_level_up,
    current_level_xp,
    level_from_total_xp,
    level_info,
    progress_summary,
    total_xp_for_level,
    xp_for_level,
    xp_gain_for_turn,
    xp_reward,
    xp_to_next_level,
)
from .schemas import (
    AccuracyResult,
    LevelInfo,
    SessionAccuracyState,
    SubScores,
    TurnOutcome,
    XpApplication,
    XpReward,
)
from .tracker import SessionAccuracyTracker

__all__ = [
    "WEIGHTS",
    "aggregate",
    "average_skill",
    "build_feedback",
    "analyze",
    "score_message",
    "apply_xp",
    "check_level_up",
    "current_level_xp",
    "level_from_total_xp",
    "level_info",
    "progress_summary",
    "total_xp_for_level",
    "xp_for_level",
    "xp_gain_for_turn",
    "xp_reward",
    "xp_to_next_level",
    "AccuracyResult",
    "LevelInfo",
    "SessionAccuracyState",
    "SubScores",
    "TurnOutcome",
    "XpApplication",
    "XpReward",
    "SessionAccuracyTracker",
]
