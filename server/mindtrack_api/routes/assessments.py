"""Assessment API routes."""
from fastapi import APIRouter, Depends, HTTPException, status

from assessment_engine.errors import InvalidAnswerSet
from assessment_engine.models import AssessmentResult
from assessment_engine.questionnaires import ANSWER_OPTIONS, QUESTIONNAIRES, questionnaire_for_slug

from ..dependencies import current_user
from ..models.assessment import AssessmentHistoryResponse, AssessmentSubmitRequest
from ..services.event_queue import PushEventType, event_queue
from ..store import user_store

router = APIRouter(prefix="/api/assessments", tags=["Assessments"])


@router.get("/questionnaires")
async def list_questionnaires():
    """Item prompts and answer options for every supported questionnaire."""
    return [
        {
            "type": q.type.value,
            "name": q.name,
            "slug": q.slug,
            "items": list(q.items),
            "maxScore": q.max_score,
            "options": [{"score": o.score, "label": o.label} for o in ANSWER_OPTIONS],
        }
        for q in QUESTIONNAIRES.values()
    ]


@router.get("/history", response_model=AssessmentHistoryResponse)
async def get_assessment_history(user_id: str = Depends(current_user)):
    """Get the user's assessment results, newest first."""
    return AssessmentHistoryResponse(assessments=user_store.assessment_history(user_id))


@router.post("/{slug}", response_model=AssessmentResult)
async def submit_assessment(
    slug: str,
    body: AssessmentSubmitRequest,
    user_id: str = Depends(current_user),
):
    """
    Score and store a questionnaire submission.

    ``slug`` is ``phq`` (PHQ-9 depression screen) or ``gad`` (GAD-7 anxiety
    screen).
    """
    try:
        questionnaire = questionnaire_for_slug(slug)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown questionnaire: {slug}")

    try:
        result = user_store.add_assessment(user_id, questionnaire.type, body.answers)
    except InvalidAnswerSet as e:
        raise HTTPException(status_code=422, detail=str(e))

    event_queue.publish(
        user_id,
        PushEventType.ASSESSMENT_SUBMITTED,
        result.model_dump(mode="json", by_alias=True),
    )
    return result
