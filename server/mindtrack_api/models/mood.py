"""Mood check-in request and response models."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from assessment_engine.models import MOOD_MAX, MOOD_MIN, NOTE_MAX_LENGTH, MoodEntry, StreakState


class MoodSubmitRequest(BaseModel):
    """Body of ``POST /api/mood``."""

    model_config = ConfigDict(populate_by_name=True)

    mood_value: int = Field(ge=MOOD_MIN, le=MOOD_MAX, strict=True, alias="moodValue")
    note: Optional[str] = Field(default=None, max_length=NOTE_MAX_LENGTH)


class MoodSubmitResponse(BaseModel):
    """Confirmed entry plus the recomputed streak."""

    entry: MoodEntry
    streak: StreakState


class MoodHistoryResponse(BaseModel):
    entries: list[MoodEntry]
