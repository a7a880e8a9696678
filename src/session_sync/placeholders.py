"""Placeholder dataset shown when no authoritative baseline could be loaded.

Every value is tagged ``SyncStatus.PLACEHOLDER`` and ids carry the
``placeholder-`` prefix, so callers can always tell it apart from real data.
"""
from datetime import datetime, timedelta
from typing import Tuple

from assessment_engine.models import AssessmentResult, AssessmentType, MoodEntry, StreakState
from assessment_engine.scoring import build_result
from assessment_engine.streaks import compute_streak

from .store import SyncStatus, Tracked

PLACEHOLDER_PREFIX = "placeholder-"


def is_placeholder_id(entity_id: str) -> bool:
    return entity_id.startswith(PLACEHOLDER_PREFIX)


def placeholder_moods(now: datetime) -> Tuple[MoodEntry, ...]:
    return (
        MoodEntry(
            id=f"{PLACEHOLDER_PREFIX}mood-1",
            mood_value=6,
            note="Good day overall",
            recorded_at=now,
        ),
        MoodEntry(
            id=f"{PLACEHOLDER_PREFIX}mood-2",
            mood_value=4,
            note="Feeling okay",
            recorded_at=now - timedelta(days=1),
        ),
    )


def placeholder_assessments(now: datetime) -> Tuple[AssessmentResult, ...]:
    return (
        build_result(
            f"{PLACEHOLDER_PREFIX}assessment-1",
            AssessmentType.DEPRESSION,
            [1, 1, 2, 1, 0, 1, 1, 1, 0],
            now,
        ),
        build_result(
            f"{PLACEHOLDER_PREFIX}assessment-2",
            AssessmentType.ANXIETY,
            [1, 1, 1, 1, 1, 1, 0],
            now,
        ),
    )


def placeholder_state(now: datetime, epoch: int = 0) -> dict:
    """Field values for a placeholder :class:`SessionState`.

    The streak is derived from the placeholder moods rather than invented.
    """
    moods = placeholder_moods(now)
    streak: StreakState = compute_streak(moods, now)
    return {
        "mood_history": tuple(
            Tracked(entry, SyncStatus.PLACEHOLDER, epoch) for entry in moods
        ),
        "mood_streak": Tracked(streak, SyncStatus.PLACEHOLDER, epoch),
        "assessment_history": tuple(
            Tracked(result, SyncStatus.PLACEHOLDER, epoch)
            for result in placeholder_assessments(now)
        ),
    }
