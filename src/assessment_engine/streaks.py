"""Pure streak calculation over a mood history.

A streak is a run of consecutive UTC calendar days with at least one mood
entry. The current streak only counts while the latest entry's day is today
or yesterday relative to the reference time.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, List

from .models import MoodEntry, StreakState, as_utc


def entry_day(moment: datetime) -> date:
    """Calendar day of ``moment`` in UTC."""
    return as_utc(moment).date()


def compute_streak(history: Iterable[MoodEntry], as_of: datetime) -> StreakState:
    """Compute the streak state of a mood history as of ``as_of``.

    Entries may be in any order; several entries on one UTC day count once.
    """
    entries = list(history)
    if not entries:
        return StreakState()

    last_entry = max(as_utc(entry.recorded_at) for entry in entries)
    unique_days = sorted({entry_day(entry.recorded_at) for entry in entries})

    current = _current_streak(unique_days, entry_day(as_of))
    longest = max(_longest_streak(unique_days), current)

    return StreakState(
        current_streak=current,
        longest_streak=longest,
        last_entry_utc=last_entry,
    )


def _current_streak(unique_days: List[date], today: date) -> int:
    """Length of the run ending at the latest day, or 0 if that run is broken."""
    if (today - unique_days[-1]).days > 1:
        return 0

    current = 1
    for i in range(len(unique_days) - 2, -1, -1):
        if unique_days[i] == unique_days[i + 1] - timedelta(days=1):
            current += 1
        else:
            break
    return current


def _longest_streak(unique_days: List[date]) -> int:
    longest = 1
    run = 1
    for i in range(1, len(unique_days)):
        if (unique_days[i] - unique_days[i - 1]).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1
    return longest
