"""Story lifecycle orchestration.

A story's remaining workflows are derived from its current status
(create-story -> dev-story -> code-review -> git-commit), run one at a time
through a workflow runner, and the status file is updated after each
successful workflow. The first failure stops the run and records a
checkpoint so ``run --resume`` can report where it stopped and continue.
"""

from story_autopilot.lifecycle.checkpoint import (
    DEFAULT_CHECKPOINT_PATH,
    CheckpointStore,
    RunCheckpoint,
)
from story_autopilot.lifecycle.errors import (
    CheckpointCorrupt,
    CheckpointMismatch,
    CheckpointNotFound,
    LifecycleCancelled,
    LifecycleError,
    NothingToResume,
    StatusPersistError,
    StepFailed,
    StoryComplete,
    UnknownStatus,
)
from story_autopilot.lifecycle.executor import LifecycleExecutor, ProgressCallback
from story_autopilot.lifecycle.resume import load_resume_checkpoint, resume_story
from story_autopilot.lifecycle.router import LIFECYCLE_WORKFLOWS, LifecycleStep, get_lifecycle

__all__ = [
    "DEFAULT_CHECKPOINT_PATH",
    "LIFECYCLE_WORKFLOWS",
    "CheckpointCorrupt",
    "CheckpointMismatch",
    "CheckpointNotFound",
    "CheckpointStore",
    "LifecycleCancelled",
    "LifecycleError",
    "LifecycleExecutor",
    "LifecycleStep",
    "NothingToResume",
    "ProgressCallback",
    "RunCheckpoint",
    "StatusPersistError",
    "StepFailed",
    "StoryComplete",
    "UnknownStatus",
    "get_lifecycle",
    "load_resume_checkpoint",
    "resume_story",
]
