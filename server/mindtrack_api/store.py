"""In-memory store of mood check-ins and assessment results per user.

Scores and streaks are computed with the same assessment engine the client
uses, so the client's optimistic values match the authoritative ones.
"""
import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from assessment_engine.models import AssessmentResult, AssessmentType, MoodEntry, StreakState, utc_now
from assessment_engine.scoring import build_result
from assessment_engine.streaks import compute_streak, entry_day

log = logging.getLogger(__name__)


class UserDataStore:
    """
    Thread-safe in-memory user data.
    Histories are appended to and never edited.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utc_now
        self._moods: Dict[str, List[MoodEntry]] = {}
        self._assessments: Dict[str, List[AssessmentResult]] = {}
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    def add_mood(
        self, user_id: str, mood_value: int, note: Optional[str] = None
    ) -> Tuple[MoodEntry, StreakState]:
        """Append a mood entry and return it with the user's new streak."""
        now = self._clock()
        entry = MoodEntry(
            id=f"mood-{uuid.uuid4().hex[:12]}",
            mood_value=mood_value,
            note=note,
            recorded_at=now,
        )
        with self._lock:
            moods = self._moods.setdefault(user_id, [])
            moods.append(entry)
            streak = compute_streak(moods, now)
        log.info(f"[API] Mood {mood_value} recorded for {user_id}, streak {streak.current_streak}")
        return entry, streak

    def mood_history(self, user_id: str, days: int) -> List[MoodEntry]:
        """Entries from the last ``days`` UTC calendar days, newest first."""
        cutoff = entry_day(self._clock()) - timedelta(days=days - 1)
        with self._lock:
            moods = list(self._moods.get(user_id, []))
        recent = [entry for entry in moods if entry_day(entry.recorded_at) >= cutoff]
        return sorted(recent, key=lambda entry: entry.recorded_at, reverse=True)

    def streak(self, user_id: str) -> StreakState:
        with self._lock:
            moods = list(self._moods.get(user_id, []))
        return compute_streak(moods, self._clock())

    def add_assessment(
        self, user_id: str, assessment_type: AssessmentType, answers: Sequence[int]
    ) -> AssessmentResult:
        """Score and append an assessment.

        Raises:
            InvalidAnswerSet: answers do not fit the questionnaire
        """
        result = build_result(
            f"assessment-{uuid.uuid4().hex[:12]}", assessment_type, answers, self._clock()
        )
        with self._lock:
            self._assessments.setdefault(user_id, []).append(result)
        log.info(
            f"[API] {assessment_type.value} assessment for {user_id}: "
            f"{result.total_score} ({result.severity_label})"
        )
        return result

    def assessment_history(self, user_id: str) -> List[AssessmentResult]:
        with self._lock:
            results = list(self._assessments.get(user_id, []))
        return sorted(results, key=lambda result: result.submitted_at, reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._moods.clear()
            self._assessments.clear()


# Singleton instance
user_store = UserDataStore()
