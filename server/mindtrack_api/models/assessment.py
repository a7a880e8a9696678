"""Assessment request and response models."""
from pydantic import BaseModel, StrictInt

from assessment_engine.models import AssessmentResult


class AssessmentSubmitRequest(BaseModel):
    """Body of ``POST /api/assessments/{phq|gad}``; checked by the scoring engine."""

    answers: list[StrictInt]


class AssessmentHistoryResponse(BaseModel):
    assessments: list[AssessmentResult]
