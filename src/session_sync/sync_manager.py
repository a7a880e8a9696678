"""
Sync Manager.

Single authority over the session's :class:`SessionState`. Every read from and
write to the remote source of truth goes through here:

- ``load()`` / ``refresh()`` replace the local view with the server's, or fall
  back to degraded mode when the server is unreachable
- ``submit_mood()`` / ``submit_assessment()`` apply an optimistic value at once,
  then reconcile it with the server's answer (server wins)
- push events from the event channel are reconciled through the same commit path

All state changes happen in synchronous sections between awaits, so they are
serialized by the event loop. At most one write per entity kind is in flight.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError as SchemaError

from assessment_engine.errors import (
    ConcurrentSubmissionError,
    InvalidAnswerSet,
    NetworkError,
    StaleResponseError,
    ValidationError,
)
from assessment_engine.models import (
    MOOD_MAX,
    MOOD_MIN,
    NOTE_MAX_LENGTH,
    AssessmentResult,
    AssessmentType,
    MoodEntry,
    StreakState,
    utc_now,
)
from assessment_engine.scoring import build_result, validate_answers, verify_result
from assessment_engine.streaks import compute_streak

from .config import get_settings
from .placeholders import placeholder_state
from .remote import RemoteAPI
from .store import LocalStore, SessionState, StateListener, SyncStatus, Tracked

logger = logging.getLogger(__name__)

MOOD_KIND = "mood"
LOCAL_ID_PREFIX = "local-"

# Push event names delivered by the event channel
MOOD_UPDATED = "mood-updated"
STREAK_UPDATED = "streak-updated"
ASSESSMENT_SUBMITTED = "assessment-submitted"


def assessment_kind(assessment_type: AssessmentType) -> str:
    return f"assessment:{AssessmentType(assessment_type).value}"


def _local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def _moods_newest_first(history: Iterable[Tracked[MoodEntry]]) -> Tuple[Tracked[MoodEntry], ...]:
    return tuple(sorted(history, key=lambda t: t.value.recorded_at, reverse=True))


def _assessments_newest_first(
    history: Iterable[Tracked[AssessmentResult]],
) -> Tuple[Tracked[AssessmentResult], ...]:
    return tuple(sorted(history, key=lambda t: t.value.submitted_at, reverse=True))


def _without_placeholders(history: Iterable[Tracked]) -> List[Tracked]:
    return [t for t in history if t.status != SyncStatus.PLACEHOLDER]


class SyncManager:
    """
    Keeps the local session view consistent with the remote service.

    The UI reads ``state`` (an immutable snapshot) and calls the mutating
    operations; nothing else writes the store.
    """

    def __init__(
        self,
        remote: RemoteAPI,
        store: Optional[LocalStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        mood_history_days: Optional[int] = None,
    ):
        """
        Initialize the sync manager.

        Args:
            remote: Remote source of truth
            store: Local store to own (a fresh one by default)
            clock: Returns the current UTC time (injectable for tests)
            mood_history_days: Days of mood history to load (default from settings)
        """
        self._remote = remote
        self._store = store or LocalStore()
        self._clock = clock or utc_now
        self.mood_history_days = mood_history_days or get_settings().mood_history_days

        self._load_sequence = 0
        # entity kind -> id of its in-flight optimistic value
        self._in_flight: Dict[str, str] = {}
        # local id of an in-flight mood -> server id of the pushed echo that replaced it
        self._echoed: Dict[str, str] = {}

    @property
    def state(self) -> SessionState:
        return self._store.state

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with the new snapshot after every committed change."""
        return self._store.add_listener(listener)

    def is_submitting(self, kind: str) -> bool:
        return kind in self._in_flight

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> SessionState:
        """
        Load mood history, streak and assessment history from the remote.

        Only the most recently issued load may commit; an older load that
        finishes later is discarded. Remote failures never propagate: the
        session keeps its last loaded data (or placeholders when it has none)
        and is flagged degraded.
        """
        self._load_sequence += 1
        sequence = self._load_sequence
        started_epoch = self._store.epoch
        self._store.commit(is_syncing=True)

        results = await asyncio.gather(
            self._remote.load_mood_history(self.mood_history_days),
            self._remote.load_streak(),
            self._remote.load_assessment_history(),
            return_exceptions=True,
        )

        try:
            self._ensure_latest(sequence)
        except StaleResponseError as e:
            logger.debug(f"[SYNC] Discarding stale load: {e}")
            return self.state

        try:
            failures = [r for r in results if isinstance(r, BaseException)]
            for failure in failures:
                if not isinstance(failure, NetworkError):
                    raise failure

            if failures:
                self._enter_degraded_after_load(failures[0])
            else:
                moods, streak, assessments = results
                self._commit_load(moods, streak, assessments, started_epoch)
        finally:
            if self.state.is_syncing:
                self._store.commit(is_syncing=False)
        return self.state

    async def refresh(self) -> SessionState:
        """Same as :meth:`load`."""
        return await self.load()

    def _ensure_latest(self, sequence: int) -> None:
        if sequence != self._load_sequence:
            raise StaleResponseError(sequence, self._load_sequence)

    def _commit_load(
        self,
        moods: Sequence[MoodEntry],
        streak: StreakState,
        assessments: Sequence[AssessmentResult],
        started_epoch: int,
    ) -> None:
        current = self.state
        epoch = self._store.next_epoch()
        pending = set(self._in_flight.values())

        loaded_mood_ids = {entry.id for entry in moods}
        mood_history = [Tracked(entry, SyncStatus.CONFIRMED, epoch) for entry in moods]
        mood_history += self._carry_over(current.mood_history, loaded_mood_ids, pending, started_epoch)

        loaded_assessment_ids = {result.id for result in assessments}
        assessment_history = []
        for result in assessments:
            try:
                verified = verify_result(result)
            except InvalidAnswerSet as e:
                logger.warning(f"[SYNC] Dropping loaded assessment {result.id}: {e}")
                continue
            assessment_history.append(Tracked(verified, SyncStatus.CONFIRMED, epoch))
        assessment_history += self._carry_over(
            current.assessment_history, loaded_assessment_ids, pending, started_epoch
        )

        mood_streak = Tracked(streak, SyncStatus.CONFIRMED, epoch)
        kept = current.mood_streak
        if (kept.is_confirmed and kept.epoch > started_epoch) or (
            kept.is_optimistic and MOOD_KIND in self._in_flight
        ):
            mood_streak = kept

        self._store.commit(
            mood_history=_moods_newest_first(mood_history),
            mood_streak=mood_streak,
            assessment_history=_assessments_newest_first(assessment_history),
            is_syncing=False,
            is_degraded=False,
            has_baseline=True,
        )
        logger.info(
            f"[SYNC] Load committed: {len(moods)} moods, {len(assessments)} assessments, "
            f"streak {streak.current_streak}/{streak.longest_streak}"
        )

    @staticmethod
    def _carry_over(
        history: Iterable[Tracked],
        loaded_ids: set,
        pending: set,
        started_epoch: int,
    ) -> List[Tracked]:
        """Local values a fresh load must not drop.

        Optimistic values whose write is still in flight, and confirmed values
        committed after the load was issued (newer than the load's snapshot).
        Optimistic values whose write already failed are superseded.
        """
        kept = []
        for tracked in history:
            if tracked.value.id in loaded_ids:
                continue
            if tracked.is_optimistic and tracked.value.id in pending:
                kept.append(tracked)
            elif tracked.is_confirmed and tracked.epoch > started_epoch:
                kept.append(tracked)
        return kept

    def _enter_degraded_after_load(self, error: BaseException) -> None:
        current = self.state
        if current.has_baseline:
            logger.warning(f"[SYNC] Load failed, keeping last loaded data: {error}")
            self._store.commit(is_syncing=False, is_degraded=True)
            return

        logger.warning(f"[SYNC] Load failed with no baseline, showing placeholders: {error}")
        epoch = self._store.next_epoch()
        placeholder = placeholder_state(self._clock(), epoch)
        local_moods = tuple(t for t in current.mood_history if t.is_optimistic)
        local_assessments = tuple(t for t in current.assessment_history if t.is_optimistic)
        self._store.commit(
            mood_history=local_moods or placeholder["mood_history"],
            mood_streak=current.mood_streak if local_moods else placeholder["mood_streak"],
            assessment_history=local_assessments or placeholder["assessment_history"],
            is_syncing=False,
            is_degraded=True,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit_mood(self, mood_value: int, note: Optional[str] = None) -> Tracked[MoodEntry]:
        """
        Record a mood check-in.

        The entry and a locally computed streak are visible before the remote
        call is made. On success both are replaced by the server's values; on
        network failure the optimistic values stay and the session is flagged
        degraded.

        Returns:
            The entry as held in the store after the write resolved

        Raises:
            ValidationError: mood outside 1-7 or note longer than 500 chars
            ConcurrentSubmissionError: a mood write is already in flight
        """
        self._validate_mood(mood_value, note)
        entry = MoodEntry(
            id=_local_id(), mood_value=mood_value, note=note, recorded_at=self._clock()
        )
        self._claim(MOOD_KIND, entry.id)
        try:
            self._apply_optimistic_mood(entry)
            try:
                submission = await self._remote.submit_mood(mood_value, note)
            except NetworkError as e:
                logger.warning(f"[SYNC] Mood write failed, keeping optimistic entry: {e}")
                self._store.commit(is_degraded=True)
                held_id = self._echoed.get(entry.id, entry.id)
                return self._find(self.state.mood_history, held_id)

            return self._confirm_mood(entry.id, submission.entry, submission.streak)
        finally:
            self._in_flight.pop(MOOD_KIND, None)
            self._echoed.pop(entry.id, None)

    async def submit_assessment(
        self, assessment_type: AssessmentType, answers: Sequence[int]
    ) -> Tracked[AssessmentResult]:
        """
        Score and record a questionnaire submission.

        The locally scored result is visible at once so severity feedback is
        instant, then reconciled with the server's result.

        Raises:
            InvalidAnswerSet: wrong length or an answer outside 0-3
            ConcurrentSubmissionError: a submission of this type is in flight
            ValidationError: the server rejected the submission (the optimistic
                result is rolled back)
        """
        try:
            assessment_type = AssessmentType(assessment_type)
        except ValueError:
            raise InvalidAnswerSet(f"Unknown assessment type: {assessment_type!r}")
        answers = validate_answers(answers, assessment_type)

        kind = assessment_kind(assessment_type)
        result = build_result(_local_id(), assessment_type, answers, self._clock())
        self._claim(kind, result.id)
        try:
            epoch = self._store.next_epoch()
            history = _without_placeholders(self.state.assessment_history)
            history.append(Tracked(result, SyncStatus.OPTIMISTIC, epoch))
            self._store.commit(assessment_history=_assessments_newest_first(history))

            try:
                confirmed = await self._remote.submit_assessment(assessment_type, answers)
            except ValidationError:
                self._remove_assessment(result.id)
                raise
            except NetworkError as e:
                logger.warning(f"[SYNC] Assessment write failed, keeping local result: {e}")
                self._store.commit(is_degraded=True)
                return self._find(self.state.assessment_history, result.id)

            return self._confirm_assessment(result.id, confirmed)
        finally:
            self._in_flight.pop(kind, None)

    def _claim(self, kind: str, local_id: str) -> None:
        if kind in self._in_flight:
            raise ConcurrentSubmissionError(kind)
        self._in_flight[kind] = local_id

    @staticmethod
    def _validate_mood(mood_value: int, note: Optional[str]) -> None:
        if isinstance(mood_value, bool) or not isinstance(mood_value, int):
            raise ValidationError(f"Mood must be an integer, got {mood_value!r}")
        if not MOOD_MIN <= mood_value <= MOOD_MAX:
            raise ValidationError(f"Mood must be between {MOOD_MIN} and {MOOD_MAX}, got {mood_value}")
        if note is not None:
            if not isinstance(note, str):
                raise ValidationError("Note must be text")
            if len(note) > NOTE_MAX_LENGTH:
                raise ValidationError(
                    f"Note must be at most {NOTE_MAX_LENGTH} characters, got {len(note)}"
                )

    def _apply_optimistic_mood(self, entry: MoodEntry) -> None:
        epoch = self._store.next_epoch()
        # placeholder data is not a baseline to build a streak on
        history = _without_placeholders(self.state.mood_history)
        history.append(Tracked(entry, SyncStatus.OPTIMISTIC, epoch))
        streak = compute_streak((t.value for t in history), self._clock())
        self._store.commit(
            mood_history=_moods_newest_first(history),
            mood_streak=Tracked(streak, SyncStatus.OPTIMISTIC, epoch),
        )

    def _confirm_mood(
        self, local_id: Optional[str], entry: MoodEntry, streak: Optional[StreakState]
    ) -> Tracked[MoodEntry]:
        epoch = self._store.next_epoch()
        confirmed = Tracked(entry, SyncStatus.CONFIRMED, epoch)
        history = [
            t
            for t in _without_placeholders(self.state.mood_history)
            if t.value.id not in (local_id, entry.id)
        ]
        history.append(confirmed)
        changes = {"mood_history": _moods_newest_first(history)}
        if streak is not None and self._accepts_streak(streak):
            changes["mood_streak"] = Tracked(streak, SyncStatus.CONFIRMED, epoch)
        self._store.commit(**changes)
        logger.info(f"[SYNC] Mood entry {entry.id} confirmed")
        return confirmed

    def _confirm_assessment(
        self, local_id: Optional[str], result: AssessmentResult
    ) -> Tracked[AssessmentResult]:
        result = verify_result(result)
        epoch = self._store.next_epoch()
        confirmed = Tracked(result, SyncStatus.CONFIRMED, epoch)
        history = [
            t
            for t in _without_placeholders(self.state.assessment_history)
            if t.value.id not in (local_id, result.id)
        ]
        history.append(confirmed)
        self._store.commit(assessment_history=_assessments_newest_first(history))
        logger.info(
            f"[SYNC] Assessment {result.id} confirmed: {result.type.value} "
            f"{result.total_score} ({result.severity_label})"
        )
        return confirmed

    def _remove_assessment(self, result_id: str) -> None:
        history = [t for t in self.state.assessment_history if t.value.id != result_id]
        self._store.commit(assessment_history=tuple(history))

    def _accepts_streak(self, streak: StreakState) -> bool:
        """Whether ``streak`` is at least as recent as the confirmed one held."""
        current = self.state.mood_streak
        if not current.is_confirmed or current.value.last_entry_utc is None:
            return True
        if streak.last_entry_utc is None:
            return False
        return streak.last_entry_utc >= current.value.last_entry_utc

    @staticmethod
    def _find(history: Iterable[Tracked], entity_id: str) -> Tracked:
        for tracked in history:
            if tracked.value.id == entity_id:
                return tracked
        raise KeyError(entity_id)

    # ------------------------------------------------------------------
    # Push reconciliation
    # ------------------------------------------------------------------

    def apply_remote_mood(self, entry: MoodEntry) -> None:
        """Reconcile a mood entry pushed by the server.

        A push can echo this session's own in-flight write before its HTTP
        response arrives; the matching optimistic entry is replaced by it.
        """
        for tracked in self.state.mood_history:
            if tracked.value.id == entry.id and tracked.is_confirmed:
                logger.debug(f"[SYNC] Mood entry {entry.id} already known")
                return
        local_id = self._pending_echo(entry)
        if local_id is not None:
            logger.debug(f"[SYNC] Mood entry {entry.id} confirms in-flight {local_id}")
            self._echoed[local_id] = entry.id
        self._confirm_mood(local_id, entry, None)

    def _pending_echo(self, entry: MoodEntry) -> Optional[str]:
        local_id = self._in_flight.get(MOOD_KIND)
        if local_id is None or local_id in self._echoed:
            return None
        for tracked in self.state.mood_history:
            if tracked.value.id == local_id and tracked.is_optimistic:
                pending = tracked.value
                if (pending.mood_value, pending.note) == (entry.mood_value, entry.note):
                    return local_id
                return None
        return None

    def apply_remote_streak(self, streak: StreakState) -> None:
        """Reconcile a streak pushed by the server; older streaks are ignored."""
        if not self._accepts_streak(streak):
            logger.debug("[SYNC] Ignoring pushed streak older than the confirmed one")
            return
        epoch = self._store.next_epoch()
        self._store.commit(mood_streak=Tracked(streak, SyncStatus.CONFIRMED, epoch))

    def apply_remote_assessment(self, result: AssessmentResult) -> None:
        """Reconcile an assessment result pushed by the server."""
        for tracked in self.state.assessment_history:
            if tracked.value.id == result.id and tracked.is_confirmed:
                return
        self._confirm_assessment(None, result)

    def attach_channel(self, channel) -> Callable[[], None]:
        """
        Route the channel's push events into the reconciliation path.

        Returns:
            A callable that detaches the handlers again
        """
        handlers = {
            MOOD_UPDATED: self._on_mood_event,
            STREAK_UPDATED: self._on_streak_event,
            ASSESSMENT_SUBMITTED: self._on_assessment_event,
        }
        for event_name, handler in handlers.items():
            channel.subscribe(event_name, handler)

        def detach() -> None:
            for event_name, handler in handlers.items():
                channel.unsubscribe(event_name, handler)

        return detach

    def _on_mood_event(self, event) -> None:
        entry = self._parse_event(MoodEntry, event)
        if entry is not None:
            self.apply_remote_mood(entry)

    def _on_streak_event(self, event) -> None:
        streak = self._parse_event(StreakState, event)
        if streak is not None:
            self.apply_remote_streak(streak)

    def _on_assessment_event(self, event) -> None:
        result = self._parse_event(AssessmentResult, event)
        if result is None:
            return
        try:
            self.apply_remote_assessment(result)
        except InvalidAnswerSet as e:
            logger.warning(f"[SYNC] Dropping pushed assessment {result.id}: {e}")

    @staticmethod
    def _parse_event(model, event):
        try:
            return model.model_validate(event.payload)
        except SchemaError as e:
            logger.warning(f"[SYNC] Malformed {event.name} event {event.id}: {e}")
            return None
