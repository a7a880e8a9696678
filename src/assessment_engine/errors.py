"""Error taxonomy shared by the scoring engine, the sync layer and the channel."""
from typing import Optional


class MindTrackError(Exception):
    """Base class for all MindTrack errors."""


class ValidationError(MindTrackError):
    """Malformed input: answer length/range, mood range or note length.

    Always raised before any optimistic mutation; values are never clamped.
    """


class InvalidAnswerSet(ValidationError):
    """An answer sequence does not fit its questionnaire."""


class NetworkError(MindTrackError):
    """Remote unreachable, non-success response, malformed body or timeout."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConcurrentSubmissionError(MindTrackError):
    """A write of the same kind is already in flight."""

    def __init__(self, kind: str):
        super().__init__(f"A {kind} submission is already in progress")
        self.kind = kind


class StaleResponseError(MindTrackError):
    """A load result was superseded by a newer load. Internal only."""

    def __init__(self, sequence: int, latest: int):
        super().__init__(f"Load #{sequence} superseded by load #{latest}")
        self.sequence = sequence
        self.latest = latest


class ChannelError(MindTrackError):
    """The event channel could not be opened or was lost."""


class ChannelAuthError(ChannelError):
    """The event channel rejected (or was given no) credential."""
