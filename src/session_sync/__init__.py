"""
Session Sync Module.

Keeps a session-lived local view of mood history, streak and assessment
history consistent with the remote service: optimistic writes, reconciliation,
degraded mode and live push updates over the event channel.
"""

from .channel import ChannelEvent, ChannelIdentity, ChannelState, EventChannel
from .remote import HttpRemoteAPI, MoodSubmission, RemoteAPI
from .sse import SSETransport
from .store import LocalStore, SessionState, SyncStatus, Tracked
from .sync_manager import (
    ASSESSMENT_SUBMITTED,
    MOOD_UPDATED,
    STREAK_UPDATED,
    SyncManager,
)

__all__ = [
    "ChannelEvent",
    "ChannelIdentity",
    "ChannelState",
    "EventChannel",
    "HttpRemoteAPI",
    "MoodSubmission",
    "RemoteAPI",
    "SSETransport",
    "LocalStore",
    "SessionState",
    "SyncStatus",
    "Tracked",
    "SyncManager",
    "MOOD_UPDATED",
    "STREAK_UPDATED",
    "ASSESSMENT_SUBMITTED",
]
