"""
Tests for the server push event queue.

These tests verify:
1. Events are delivered only to the publishing user's subscribers
2. Last-Event-ID replays missed events from history
3. History is bounded per user
4. SSE frame formatting

Usage:
    pytest tests/test_event_queue.py -v
"""

import asyncio
import json
import pytest

from mindtrack_api.services.event_queue import EventQueue, PushEventType


async def next_event(stream):
    return await stream.__anext__()


@pytest.fixture
def queue():
    return EventQueue(max_history=3)


class TestPublish:
    """Publishing and history."""

    def test_sequence_increases(self, queue):
        """Event ids increase monotonically across users."""
        first = queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": 1})
        second = queue.publish("bob", PushEventType.STREAK_UPDATED, {"n": 2})
        assert int(second.id) > int(first.id)

    def test_history_is_per_user_and_bounded(self, queue):
        """Each user keeps at most max_history events, newest first."""
        for n in range(5):
            queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": n})
        queue.publish("bob", PushEventType.MOOD_UPDATED, {"n": 99})

        history = queue.get_history("alice")
        assert [e.payload["n"] for e in history] == [4, 3, 2]
        assert len(queue.get_history("bob")) == 1

    def test_stats(self, queue):
        """Stats count events by type."""
        queue.publish("alice", PushEventType.MOOD_UPDATED, {})
        queue.publish("alice", PushEventType.STREAK_UPDATED, {})
        queue.publish("alice", PushEventType.MOOD_UPDATED, {})

        stats = queue.get_stats()
        assert stats["total_published"] == 3
        assert stats["events_by_type"] == {"mood-updated": 2, "streak-updated": 1}
        assert stats["current_subscribers"] == 0

    def test_sse_frame(self, queue):
        """Events render as id/event/data frames."""
        event = queue.publish("alice", PushEventType.ASSESSMENT_SUBMITTED, {"score": 8})
        frame = event.to_sse()

        lines = frame.split("\n")
        assert lines[0] == f"id: {event.id}"
        assert lines[1] == "event: assessment-submitted"
        assert json.loads(lines[2][len("data: "):]) == {"score": 8}
        assert frame.endswith("\n\n")


class TestSubscribe:
    """Subscriptions and replay."""

    @pytest.mark.asyncio
    async def test_live_delivery_to_own_user(self, queue):
        """Subscribers receive their user's events only."""
        stream = queue.subscribe("alice")
        pending = asyncio.create_task(next_event(stream))
        await asyncio.sleep(0)

        queue.publish("bob", PushEventType.MOOD_UPDATED, {"who": "bob"})
        queue.publish("alice", PushEventType.MOOD_UPDATED, {"who": "alice"})

        event = await asyncio.wait_for(pending, timeout=1)
        assert event.payload == {"who": "alice"}
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_replay_after_last_event_id(self, queue):
        """Events newer than Last-Event-ID are replayed first."""
        first = queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": 1})
        queue.publish("alice", PushEventType.STREAK_UPDATED, {"n": 2})
        queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": 3})

        stream = queue.subscribe("alice", last_event_id=first.id)
        replayed = [await stream.__anext__(), await stream.__anext__()]
        await stream.aclose()

        assert [e.payload["n"] for e in replayed] == [2, 3]

    @pytest.mark.asyncio
    async def test_invalid_last_event_id_replays_nothing(self, queue):
        """A non-numeric Last-Event-ID is ignored."""
        queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": 1})
        stream = queue.subscribe("alice", last_event_id="abc")
        pending = asyncio.create_task(next_event(stream))
        await asyncio.sleep(0)

        queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": 2})
        event = await asyncio.wait_for(pending, timeout=1)
        assert event.payload == {"n": 2}
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_closing_removes_subscriber(self, queue):
        """A closed stream is no longer a subscriber."""
        stream = queue.subscribe("alice")
        pending = asyncio.create_task(next_event(stream))
        await asyncio.sleep(0)
        assert queue.get_stats()["current_subscribers"] == 1

        queue.publish("alice", PushEventType.MOOD_UPDATED, {})
        await pending
        await stream.aclose()

        assert queue.get_stats()["current_subscribers"] == 0

    @pytest.mark.asyncio
    async def test_replay_of_long_history(self):
        """A history longer than the live buffer replays in full."""
        queue = EventQueue(max_history=250)
        first = queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": 0})
        for n in range(1, 250):
            queue.publish("alice", PushEventType.MOOD_UPDATED, {"n": n})

        stream = queue.subscribe("alice", last_event_id=first.id)
        replayed = [await stream.__anext__() for _ in range(249)]
        await stream.aclose()

        assert replayed[0].payload["n"] == 1
        assert replayed[-1].payload["n"] == 249
