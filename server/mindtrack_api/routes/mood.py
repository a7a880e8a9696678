"""Mood check-in API routes."""
from fastapi import APIRouter, Depends, Query

from assessment_engine.models import StreakState

from ..config import get_settings
from ..dependencies import current_user
from ..models.mood import MoodHistoryResponse, MoodSubmitRequest, MoodSubmitResponse
from ..services.event_queue import PushEventType, event_queue
from ..store import user_store

router = APIRouter(prefix="/api/mood", tags=["Mood"])


@router.post("", response_model=MoodSubmitResponse)
async def submit_mood(body: MoodSubmitRequest, user_id: str = Depends(current_user)):
    """
    Record a mood check-in.

    Returns the stored entry and the recomputed streak, and pushes both to
    the user's other sessions.
    """
    entry, streak = user_store.add_mood(user_id, body.mood_value, body.note)
    response = MoodSubmitResponse(entry=entry, streak=streak)

    payload = response.model_dump(mode="json", by_alias=True)
    event_queue.publish(user_id, PushEventType.MOOD_UPDATED, payload["entry"])
    event_queue.publish(user_id, PushEventType.STREAK_UPDATED, payload["streak"])
    return response


@router.get("/history", response_model=MoodHistoryResponse)
async def get_mood_history(
    days: int = Query(default=30, ge=1, description="Number of days of history"),
    user_id: str = Depends(current_user),
):
    """Get the user's mood entries for the last ``days`` days, newest first."""
    days = min(days, get_settings().max_history_days)
    return MoodHistoryResponse(entries=user_store.mood_history(user_id, days))


@router.get("/streak", response_model=StreakState)
async def get_mood_streak(user_id: str = Depends(current_user)):
    """Get the user's current and longest check-in streak."""
    return user_store.streak(user_id)
