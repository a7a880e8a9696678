"""Thread-safe in-memory push event queue.

This module provides a per-user publish-subscribe mechanism for data change
events that are streamed to connected sessions via SSE. Event ids increase
monotonically, so a reconnecting client can send the last id it saw
(``Last-Event-ID``) and receive only what it missed.
"""
import asyncio
import itertools
import json
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from ..config import get_settings

# Room for live events on top of a full history replay
SUBSCRIBER_BUFFER = 100


class PushEventType(str, Enum):
    """Types of push events."""
    MOOD_UPDATED = "mood-updated"
    STREAK_UPDATED = "streak-updated"
    ASSESSMENT_SUBMITTED = "assessment-submitted"


@dataclass
class PushEvent:
    """A data change for one user."""

    sequence: int
    event_type: PushEventType
    user_id: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def id(self) -> str:
        return str(self.sequence)

    def to_sse(self) -> str:
        """Format as an SSE frame."""
        data = json.dumps(self.payload)
        return f"id: {self.id}\nevent: {self.event_type.value}\ndata: {data}\n\n"


class EventQueue:
    """Thread-safe in-memory queue of per-user push events.

    Supports multiple SSE subscribers per user and keeps a bounded history
    per user for replay after reconnects.
    """

    def __init__(self, max_history: Optional[int] = None):
        """Initialize the event queue.

        Args:
            max_history: Maximum number of events kept per user.
        """
        self._max_history = max_history or get_settings().event_history_size
        self._history: Dict[str, deque] = {}
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()
        self._stats = {
            "total_published": 0,
            "total_subscribers": 0,
            "events_by_type": {},
        }

    def publish(
        self, user_id: str, event_type: PushEventType, payload: Dict[str, Any]
    ) -> PushEvent:
        """Publish an event to every subscriber of ``user_id``.

        Thread-safe method that can be called from any thread.
        """
        with self._lock:
            event = PushEvent(
                sequence=next(self._sequence),
                event_type=event_type,
                user_id=user_id,
                payload=payload,
            )
            history = self._history.setdefault(user_id, deque(maxlen=self._max_history))
            history.append(event)

            self._stats["total_published"] += 1
            by_type = self._stats["events_by_type"]
            by_type[event_type.value] = by_type.get(event_type.value, 0) + 1

            # Notify subscribers, dropping the ones that stopped reading
            subscribers = self._subscribers.get(user_id, [])
            dead_subscribers = []
            for queue in subscribers:
                try:
                    queue.put_nowait(event)
                except asyncio.QueueFull:
                    dead_subscribers.append(queue)
            for queue in dead_subscribers:
                subscribers.remove(queue)

        return event

    async def subscribe(
        self, user_id: str, last_event_id: Optional[str] = None
    ) -> AsyncIterator[PushEvent]:
        """Subscribe to a user's events via async generator.

        Args:
            user_id: Whose events to receive.
            last_event_id: Id of the last event the client saw; newer events
                still in history are replayed first.

        Yields:
            PushEvent objects as they arrive.
        """
        queue: asyncio.Queue[PushEvent] = asyncio.Queue(
            maxsize=self._max_history + SUBSCRIBER_BUFFER
        )

        with self._lock:
            self._subscribers.setdefault(user_id, []).append(queue)
            self._stats["total_subscribers"] += 1

            after = _parse_sequence(last_event_id)
            if after is not None:
                for event in self._history.get(user_id, ()):
                    if event.sequence > after:
                        queue.put_nowait(event)

        try:
            while True:
                event = await queue.get()
                yield event
        finally:
            with self._lock:
                subscribers = self._subscribers.get(user_id, [])
                if queue in subscribers:
                    subscribers.remove(queue)

    def get_history(self, user_id: str, count: int = 50) -> List[PushEvent]:
        """Recent events for a user, newest first."""
        with self._lock:
            return list(self._history.get(user_id, ()))[-count:][::-1]

    def get_stats(self) -> dict:
        with self._lock:
            return {
                **self._stats,
                "current_subscribers": sum(len(s) for s in self._subscribers.values()),
                "users_with_history": len(self._history),
            }

    def clear_history(self) -> None:
        """Clear every user's event history."""
        with self._lock:
            self._history.clear()


def _parse_sequence(event_id: Optional[str]) -> Optional[int]:
    if not event_id:
        return None
    try:
        return int(event_id)
    except ValueError:
        return None


# Global singleton instance
event_queue = EventQueue()
