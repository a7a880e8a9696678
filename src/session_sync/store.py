"""Session-lived local store of the latest known mood and assessment data.

The store holds one immutable :class:`SessionState`. Every change replaces the
whole state in a single assignment, so readers never observe a partial update.
Only the sync manager commits to the store; everyone else reads snapshots.
"""
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from assessment_engine.models import AssessmentResult, AssessmentType, MoodEntry, StreakState

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CURRENT_MOOD = 5


class SyncStatus(str, Enum):
    """Where a locally held value came from."""

    INITIAL = "initial"  # nothing loaded yet
    OPTIMISTIC = "optimistic"  # computed locally, not confirmed by the server
    CONFIRMED = "confirmed"  # returned or pushed by the server
    PLACEHOLDER = "placeholder"  # degraded-mode stand-in data


@dataclass(frozen=True)
class Tracked(Generic[T]):
    """A value tagged with its sync status.

    ``epoch`` is the store commit counter at the time the value was committed.
    It orders local commits and is ignored by equality.
    """

    value: T
    status: SyncStatus
    epoch: int = field(default=0, compare=False)

    @property
    def is_optimistic(self) -> bool:
        return self.status == SyncStatus.OPTIMISTIC

    @property
    def is_confirmed(self) -> bool:
        return self.status == SyncStatus.CONFIRMED


@dataclass(frozen=True)
class SessionState:
    """Read-only snapshot of everything the UI shows.

    Histories are ordered newest-first.
    """

    mood_history: Tuple[Tracked[MoodEntry], ...] = ()
    mood_streak: Tracked[StreakState] = Tracked(StreakState(), SyncStatus.INITIAL)
    assessment_history: Tuple[Tracked[AssessmentResult], ...] = ()
    is_syncing: bool = False
    is_degraded: bool = False
    has_baseline: bool = False

    @property
    def moods(self) -> List[MoodEntry]:
        return [tracked.value for tracked in self.mood_history]

    @property
    def streak(self) -> StreakState:
        return self.mood_streak.value

    @property
    def assessments(self) -> List[AssessmentResult]:
        return [tracked.value for tracked in self.assessment_history]

    @property
    def current_mood(self) -> int:
        """Mood value of the latest entry, or the neutral default."""
        if not self.mood_history:
            return DEFAULT_CURRENT_MOOD
        return self.mood_history[0].value.mood_value

    def mood_calendar(self, month: int, year: int) -> List[MoodEntry]:
        """Entries recorded in the given UTC calendar month (1-12)."""
        return [
            entry
            for entry in self.moods
            if entry.recorded_at.month == month and entry.recorded_at.year == year
        ]

    def latest_assessment(self, assessment_type: AssessmentType) -> Optional[AssessmentResult]:
        for result in self.assessments:
            if result.type == assessment_type:
                return result
        return None


StateListener = Callable[[SessionState], None]


class LocalStore:
    """In-memory holder of the current :class:`SessionState`."""

    def __init__(self, initial: Optional[SessionState] = None):
        self._state = initial or SessionState()
        self._epoch = 0
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    def next_epoch(self) -> int:
        self._epoch += 1
        return self._epoch

    def commit(self, **changes) -> SessionState:
        """Replace the state with ``changes`` applied and notify listeners."""
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"[STORE] State listener failed: {e}")
        return self._state

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove
