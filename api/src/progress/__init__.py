"""Lesson playback progress module.

Provides:
- Progress curve shown to students (display only)
- Per-session playback tracking with debounced persistence
- Automatic and manual lesson completion
- Sales-video unlock gate
"""

from .curve import display_progress, playback_fraction
from .models import PROGRESS_TABLES_CQL, LessonProgress, TrackerState
from .store import CassandraProgressStore, ProgressError, ProgressStore
from .tracker import PlaybackTracker
from .unlock import FlagStore, RedisFlagStore, UnlockGate


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CassandraProgressStore",
    "FlagStore",
    "LessonProgress",
    "PlaybackTracker",
    "ProgressError",
    "ProgressStore",
    "RedisFlagStore",
    "TrackerState",
    "UnlockGate",
    "display_progress",
    "playback_fraction",
]
