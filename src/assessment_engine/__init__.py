"""
Assessment Engine.

Pure scoring of standardized questionnaires and streak calculation over a
mood history. Shared by the client sync layer and the reference service.
"""

from .errors import (
    MindTrackError,
    ValidationError,
    InvalidAnswerSet,
    NetworkError,
    ConcurrentSubmissionError,
    StaleResponseError,
    ChannelError,
    ChannelAuthError,
)
from .models import AssessmentResult, AssessmentType, MoodEntry, StreakState
from .scoring import Score, score, build_result, verify_result
from .streaks import compute_streak

__all__ = [
    "MindTrackError",
    "ValidationError",
    "InvalidAnswerSet",
    "NetworkError",
    "ConcurrentSubmissionError",
    "StaleResponseError",
    "ChannelError",
    "ChannelAuthError",
    "AssessmentResult",
    "AssessmentType",
    "MoodEntry",
    "StreakState",
    "Score",
    "score",
    "build_result",
    "verify_result",
    "compute_streak",
]
