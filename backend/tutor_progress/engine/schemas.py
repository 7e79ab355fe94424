"""Value types produced by the scoring and progression engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AccuracyResult(BaseModel):
    """Scores and feedback for one learner message. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    overall: int = Field(default=0, ge=0, le=100)
    grammar: int = Field(default=0, ge=0, le=100)
    vocabulary: int = Field(default=0, ge=0, le=100)
    spelling: int = Field(default=0, ge=0, le=100)
    fluency: int = Field(default=0, ge=0, le=100)
    feedback: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "AccuracyResult":
        return cls()


class LevelInfo(BaseModel):
    """Snapshot of a learner's position on the leveling curve.

    Always derived from ``total_xp``; the JSON form uses the camelCase keys
    existing clients read (``currentXP``, ``xpToNextLevel`` ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    level: int = Field(ge=1)
    current_xp: int = Field(alias="currentXP", ge=0)
    total_xp: int = Field(alias="totalXP", ge=0)
    xp_to_next_level: int = Field(alias="xpToNextLevel", ge=0)
    progress_percentage: int = Field(alias="progressPercentage", ge=0, le=100)


class XpApplication(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    new_total_xp: int = Field(alias="newTotalXp", ge=0)
    leveled_up: bool = Field(alias="leveledUp")
    old_level: int = Field(alias="oldLevel", ge=1)
    new_level: int = Field(alias="newLevel", ge=1)
    xp_added: int = Field(alias="xpAdded", ge=0)


class SessionAccuracyState(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    historical_scores: Tuple[int, ...] = Field(default=(), alias="historicalScores")
    current_accuracy: int = Field(default=0, alias="currentAccuracy", ge=0, le=100)
    rolling_accuracy: int = Field(default=0, alias="rollingAccuracy", ge=0, le=100)
    total_messages: int = Field(default=0, alias="totalMessages", ge=0)
    quality_messages: int = Field(default=0, alias="qualityMessages", ge=0)
    total_xp: int = Field(default=0, alias="totalXP", ge=0)


class TurnOutcome(BaseModel):
    """Everything one message turn changed for the learner."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    accuracy: AccuracyResult
    xp_gained: int = Field(alias="xpGained", ge=0)
    current_accuracy: int = Field(alias="currentAccuracy", ge=0, le=100)
    xp: XpApplication
    level_info: LevelInfo = Field(alias="levelInfo")


@dataclass(frozen=True, slots=True)
class SubScores:
    grammar: int
    vocabulary: int
    spelling: int
    fluency: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "grammar": self.grammar,
            "vocabulary": self.vocabulary,
            "spelling": self.spelling,
            "fluency": self.fluency,
        }


@dataclass(frozen=True, slots=True)
class XpReward:
    total_xp: int
    reason: str
    base_xp: int
    multiplier: float


__all__: List[str] = [
    "AccuracyResult",
    "LevelInfo",
    "XpApplication",
    "SessionAccuracyState",
    "TurnOutcome",
    "SubScores",
    "XpReward",
]
