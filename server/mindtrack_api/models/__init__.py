"""Pydantic models for MindTrack API requests and responses."""
from .assessment import AssessmentHistoryResponse, AssessmentSubmitRequest
from .mood import MoodHistoryResponse, MoodSubmitRequest, MoodSubmitResponse

__all__ = [
    "AssessmentHistoryResponse",
    "AssessmentSubmitRequest",
    "MoodHistoryResponse",
    "MoodSubmitRequest",
    "MoodSubmitResponse",
]
