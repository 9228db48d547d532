"""Sprint status file model, reader and writer."""

from story_autopilot.status.models import SprintStatus, StoryStatus
from story_autopilot.status.reader import (
    DEFAULT_STATUS_PATH,
    NoEpicStories,
    SprintStatusReader,
    StatusFileError,
    StoryNotFound,
)
from story_autopilot.status.writer import SprintStatusWriter

__all__ = [
    "DEFAULT_STATUS_PATH",
    "NoEpicStories",
    "SprintStatus",
    "SprintStatusReader",
    "SprintStatusWriter",
    "StatusFileError",
    "StoryNotFound",
    "StoryStatus",
]
