"""Push event stream (SSE)."""
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse

from ..dependencies import current_user
from ..services.event_queue import event_queue

router = APIRouter(prefix="/api/events", tags=["Events"])


@router.get("/stream")
async def stream_events(
    user_id: str = Depends(current_user),
    last_event_id: Optional[str] = Header(default=None),
):
    """
    Stream the user's data change events via Server-Sent Events (SSE).

    Events: ``mood-updated`` (a MoodEntry), ``streak-updated`` (a StreakState)
    and ``assessment-submitted`` (an AssessmentResult). Each frame carries an
    ``id``; a client reconnecting with ``Last-Event-ID`` first receives the
    events it missed.

    The stream never closes - clients should handle reconnection.

    Usage with curl:
        curl -N -H "Authorization: Bearer <token>" http://localhost:3000/api/events/stream
    """
    async def event_generator():
        async for event in event_queue.subscribe(user_id, last_event_id=last_event_id):
            yield event.to_sse()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
