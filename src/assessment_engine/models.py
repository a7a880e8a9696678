"""Domain entities for assessments and mood check-ins.

All entities are frozen pydantic models: an assessment or a mood entry is
immutable once created, and corrections happen by creating a new entry.
Field aliases match the JSON names used on the wire.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

MOOD_MIN = 1
MOOD_MAX = 7
NOTE_MAX_LENGTH = 500

AnswerSet = Tuple[int, ...]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AssessmentType(str, Enum):
    """Standardized questionnaires supported by the scoring engine."""

    DEPRESSION = "depression"
    ANXIETY = "anxiety"


class MoodEntry(BaseModel):
    """A single mood check-in."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    mood_value: int = Field(ge=MOOD_MIN, le=MOOD_MAX, alias="moodValue")
    note: Optional[str] = Field(default=None, max_length=NOTE_MAX_LENGTH)
    recorded_at: datetime = Field(alias="dateUTC")

    @field_validator("recorded_at")
    @classmethod
    def _recorded_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class StreakState(BaseModel):
    """Current/longest engagement streak derived from the mood history."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    current_streak: int = Field(default=0, ge=0, alias="current")
    longest_streak: int = Field(default=0, ge=0, alias="longest")
    last_entry_utc: Optional[datetime] = Field(default=None, alias="lastEntry")

    @field_validator("last_entry_utc", mode="before")
    @classmethod
    def _empty_last_entry(cls, value):
        if value == "":
            return None
        return value

    @field_validator("last_entry_utc")
    @classmethod
    def _last_entry_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _longest_covers_current(self) -> "StreakState":
        if self.longest_streak < self.current_streak:
            raise ValueError(
                f"longest streak ({self.longest_streak}) is shorter than "
                f"current streak ({self.current_streak})"
            )
        return self

    @field_serializer("last_entry_utc")
    def _serialize_last_entry(self, value: Optional[datetime]) -> str:
        return value.isoformat() if value is not None else ""


class AssessmentResult(BaseModel):
    """A scored questionnaire submission.

    ``total_score`` and ``severity_label`` are derived values. Results that come
    from outside the process should go through
    :func:`assessment_engine.scoring.verify_result` before use.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: AssessmentType
    total_score: int = Field(ge=0, alias="score")
    severity_label: str = Field(alias="severity")
    answers: AnswerSet
    submitted_at: datetime = Field(alias="dateUTC")

    @field_validator("submitted_at")
    @classmethod
    def _submitted_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)
