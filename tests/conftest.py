"""
Pytest fixtures for MindTrack tests.
"""
import sys
import asyncio
import pytest
from pathlib import Path
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence
from dotenv import load_dotenv

# Ensure src/, server/ and scripts/ are on sys.path so tests run from a plain checkout.
ROOT = Path(__file__).resolve().parent.parent
for path in (ROOT / "src", ROOT / "server", ROOT / "scripts"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

# Load environment variables
load_dotenv()

from assessment_engine.errors import ChannelAuthError, ChannelError, NetworkError, ValidationError  # noqa: E402
from assessment_engine.models import AssessmentResult, AssessmentType, MoodEntry, StreakState  # noqa: E402
from assessment_engine.scoring import build_result  # noqa: E402
from assessment_engine.streaks import compute_streak  # noqa: E402
from session_sync.channel import ChannelEvent, ChannelIdentity  # noqa: E402
from session_sync.remote import MoodSubmission  # noqa: E402


# ============================================================================
# Clock
# ============================================================================

NOW = datetime(2024, 12, 8, 15, 30, tzinfo=timezone.utc)


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


def mood(entry_id: str, value: int, at: datetime, note: Optional[str] = None) -> MoodEntry:
    return MoodEntry(id=entry_id, mood_value=value, note=note, recorded_at=at)


# ============================================================================
# Remote API double
# ============================================================================


class FakeRemote:
    """
    In-memory RemoteAPI.

    Holds an authoritative dataset; ``fail`` makes every call raise
    NetworkError, and ``gate`` (an asyncio.Event) holds calls until set.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.moods: List[MoodEntry] = []
        self.assessments: List[AssessmentResult] = []
        self.fail = False
        self.reject_assessments = False
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []
        self._next_id = 1

    def _new_id(self, prefix: str) -> str:
        value = f"{prefix}-{self._next_id}"
        self._next_id += 1
        return value

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise NetworkError(f"{name} unreachable")

    def add_mood(self, value: int, at: datetime, note: Optional[str] = None) -> MoodEntry:
        entry = mood(self._new_id("srv-mood"), value, at, note)
        self.moods.append(entry)
        return entry

    async def submit_assessment(
        self, assessment_type: AssessmentType, answers: Sequence[int]
    ) -> AssessmentResult:
        await self._enter("submit_assessment")
        if self.reject_assessments:
            raise ValidationError("rejected by server")
        result = build_result(self._new_id("srv-assessment"), assessment_type, answers, self.clock())
        self.assessments.append(result)
        return result

    async def submit_mood(self, mood_value: int, note: Optional[str] = None) -> MoodSubmission:
        await self._enter("submit_mood")
        entry = self.add_mood(mood_value, self.clock(), note)
        return MoodSubmission(entry=entry, streak=compute_streak(self.moods, self.clock()))

    async def load_mood_history(self, max_days: int) -> List[MoodEntry]:
        await self._enter("load_mood_history")
        return sorted(self.moods, key=lambda e: e.recorded_at, reverse=True)

    async def load_streak(self) -> StreakState:
        await self._enter("load_streak")
        return compute_streak(self.moods, self.clock())

    async def load_assessment_history(self) -> List[AssessmentResult]:
        await self._enter("load_assessment_history")
        return sorted(self.assessments, key=lambda r: r.submitted_at, reverse=True)


@pytest.fixture
def remote(clock):
    return FakeRemote(clock)


# ============================================================================
# Event channel transport double
# ============================================================================


class MemoryConnection:
    """Connection fed by MemoryTransport.emit()."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.subscriptions: List[List[str]] = []
        self.closed = False

    def subscribe(self, event_names: Sequence[str]) -> None:
        self.subscriptions.append(list(event_names))

    async def events(self):
        while True:
            event = await self.queue.get()
            if event is None:
                return
            if isinstance(event, Exception):
                raise event
            yield event

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(None)


class MemoryTransport:
    """ChannelTransport that keeps the server side in memory."""

    def __init__(self, valid_tokens: Sequence[str] = ("token-abc",)):
        self.valid_tokens = set(valid_tokens)
        self.connections: List[MemoryConnection] = []
        self.open_calls: List[Optional[str]] = []
        self.unreachable = False
        self.history: List[ChannelEvent] = []
        self.replay_on_reconnect = False

    @property
    def current(self) -> Optional[MemoryConnection]:
        for connection in reversed(self.connections):
            if not connection.closed:
                return connection
        return None

    async def open(self, identity: ChannelIdentity, last_event_id: Optional[str] = None):
        self.open_calls.append(last_event_id)
        if self.unreachable:
            raise ChannelError("service unreachable")
        if identity.token not in self.valid_tokens:
            raise ChannelAuthError("invalid token")
        connection = MemoryConnection()
        self.connections.append(connection)
        if self.replay_on_reconnect:
            # a server that replays recent history to every new connection
            for event in self.history:
                connection.queue.put_nowait(event)
        return connection

    def emit(self, event: ChannelEvent) -> None:
        self.history.append(event)
        connection = self.current
        if connection is not None:
            connection.queue.put_nowait(event)

    async def drop(self) -> None:
        """Simulate network loss from the server side."""
        connection = self.current
        if connection is not None:
            connection.queue.put_nowait(ChannelError("connection reset"))
            connection.closed = True


@pytest.fixture
def transport():
    return MemoryTransport()


async def settle(rounds: int = 5) -> None:
    """Let pending tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
