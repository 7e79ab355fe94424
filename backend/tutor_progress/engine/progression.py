"""
Progression Calculator
======================

XP and level arithmetic over a single leveling curve. Every caller (the HTTP
service, turn processing, previews) goes through these functions; the curve is
defined here and nowhere else.

Curve: advancing from level L to L+1 costs ``floor(500 * 1.1 ** (L - 1))`` XP.
Level 1 to 2 costs 500, each further level costs 10% more.

Out-of-range input is clamped rather than rejected: negative XP is treated as
0, levels below 1 as level 1, and levels beyond MAX_LEVEL as MAX_LEVEL.

MAX_LEVEL keeps every level cost within float range (1.1 ** L overflows a
little past L = 7440). Below total_xp_for_level(MAX_LEVEL), far
beyond anything a 64-bit XP column can hold, every level satisfies
level_from_total_xp(total_xp_for_level(L)) == L. XP past that threshold stays
at MAX_LEVEL with progress pinned at 100.
"""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from typing import Any, Dict, Mapping, Optional, Tuple

from .aggregator import average_skill
from .numeric import round_half_up, to_score
from .schemas import LevelInfo, XpApplication, XpReward


logger = logging.getLogger(__name__)


BASE_LEVEL_XP = 500
LEVEL_GROWTH = 1.1
MAX_LEVEL = 7000


def _clamp_level(level: int) -> int:
    return max(1, min(MAX_LEVEL, int(level)))


def _clamp_xp(total_xp: int) -> int:
    return max(0, int(total_xp))


def _curve_cost(level: int) -> int:
    return int(math.floor(BASE_LEVEL_XP * LEVEL_GROWTH ** (level - 1)))


# _THRESHOLDS[i] is the cumulative XP needed to reach level i + 1
def _build_thresholds() -> Tuple[int, ...]:
    totals = [0]
    for level in range(1, MAX_LEVEL):
        totals.append(totals[-1] + _curve_cost(level))
    return tuple(totals)


_THRESHOLDS: Tuple[int, ...] = _build_thresholds()


def xp_for_level(level: int) -> int:
    """XP required to advance from ``level`` to ``level + 1``."""
    return _curve_cost(_clamp_level(level))


def total_xp_for_level(target_level: int) -> int:
    """Cumulative XP needed to reach ``target_level`` from level 1."""
    return _THRESHOLDS[_clamp_level(target_level) - 1]


def level_from_total_xp(total_xp: int) -> int:
    """Largest level whose cumulative threshold is <= ``total_xp``."""
    return bisect_right(_THRESHOLDS, _clamp_xp(total_xp))


def current_level_xp(total_xp: int, level: int) -> int:
    return max(0, _clamp_xp(total_xp) - total_xp_for_level(level))


def xp_to_next_level(total_xp: int, level: int) -> int:
    return max(0, xp_for_level(level) - current_level_xp(total_xp, level))


def level_info(total_xp: int) -> LevelInfo:
    total = _clamp_xp(total_xp)
    level = level_from_total_xp(total)
    current = current_level_xp(total, level)
    required = xp_for_level(level)
    if current >= required:
        progress = 100
    else:
        progress = to_score(100 * current / required)
    return LevelInfo(
        level=level,
        current_xp=current,
        total_xp=total,
        xp_to_next_level=xp_to_next_level(total, level),
        progress_percentage=progress,
    )


def check_level_up(old_total_xp: int, new_total_xp: int) -> bool:
    return level_from_total_xp(new_total_xp) > level_from_total_xp(old_total_xp)


def apply_xp(old_total_xp: int, delta: int) -> XpApplication:
    """Add ``delta`` XP to a running total. XP is never taken away."""
    old_total = _clamp_xp(old_total_xp)
    if delta < 0:
        logger.warning("Ignoring negative XP delta %s", delta)
    added = max(0, int(delta))
    new_total = old_total + added
    old_level = level_from_total_xp(old_total)
    new_level = level_from_total_xp(new_total)
    return XpApplication(
        new_total_xp=new_total,
        leveled_up=new_level > old_level,
        old_level=old_level,
        new_level=new_level,
        xp_added=added,
    )


def xp_gain_for_turn(overall_accuracy: int, message_length: int) -> int:
    """XP earned for one message turn; at least 1.

    Base is a tenth of the accuracy (0..10), plus an engagement bonus for
    longer messages and a bonus for high accuracy.
    """
    accuracy = max(0, min(100, int(overall_accuracy)))
    xp = accuracy // 10

    if message_length > 50:
        xp += 5
    elif message_length > 20:
        xp += 2

    if accuracy > 90:
        xp += 5
    elif accuracy > 80:
        xp += 2

    return max(1, xp)


# ============================================================================
# ACTIVITY REWARDS
# ============================================================================

XP_REWARDS: Dict[str, int] = {
    "send_message": 10,
    "receive_response": 5,
    "complete_exercise": 25,
    "daily_streak": 15,
    "perfect_grammar": 20,
    "vocabulary_milestone": 30,
    "achievement_unlock": 50,
    "level_up_bonus": 100,
    "session_complete": 15,
    "first_message": 10,
    "long_conversation": 20,
    "quick_response": 5,
    "detailed_response": 15,
    "helpful_correction": 10,
    "consistent_practice": 25,
    "accuracy_improvement": 15,
    "vocabulary_expansion": 20,
    "grammar_mastery": 25,
    "fluency_achievement": 30,
}

DEFAULT_REWARD = 5


def xp_reward(action: str, multiplier: float = 1.0, custom_xp: Optional[int] = None) -> XpReward:
    """XP for a named activity, with the activity-type multipliers applied."""
    base = custom_xp or XP_REWARDS.get(action, DEFAULT_REWARD)

    if "streak" in action:
        multiplier *= 1.5
    if "conversation" in action or "response" in action:
        multiplier = min(multiplier * 1.2, 2.0)
    if "accuracy" in action or "grammar" in action or "vocabulary" in action:
        multiplier = min(multiplier * 1.1, 1.8)

    total = max(0, round_half_up(base * multiplier))
    reason = f"{action.replace('_', ' ')} (+{total} XP)"
    if multiplier != 1.0:
        reason += f" x{multiplier:g}"
    return XpReward(total_xp=total, reason=reason, base_xp=base, multiplier=multiplier)


def progress_summary(total_xp: int, skills: Mapping[str, Optional[int]]) -> Dict[str, Any]:
    info = level_info(total_xp)
    return {
        "level": info.level,
        "currentXP": info.current_xp,
        "totalXP": info.total_xp,
        "xpToNextLevel": info.xp_to_next_level,
        "progress": f"{info.current_xp}/{xp_for_level(info.level)} XP",
        "progressPercentage": info.progress_percentage,
        "averageSkill": average_skill(skills.values()),
        "skills": dict(skills),
    }


__all__ = [
    "BASE_LEVEL_XP",
    "LEVEL_GROWTH",
    "MAX_LEVEL",
    "xp_for_level",
    "total_xp_for_level",
    "level_from_total_xp",
    "current_level_xp",
    "xp_to_next_level",
    "level_info",
    "check_level_up",
    "apply_xp",
    "xp_gain_for_turn",
    "XP_REWARDS",
    "xp_reward",
    "progress_summary",
]
