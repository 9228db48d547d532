"""Exceptions raised by lifecycle derivation, execution and resume."""

from __future__ import annotations

from pathlib import Path


class LifecycleError(RuntimeError):
    """Base class for lifecycle orchestration errors."""


class StoryComplete(LifecycleError):
    """Story is already done; callers iterating many stories skip it."""

    def __init__(self, message: str = "story is complete, no workflow needed") -> None:
        super().__init__(message)


class UnknownStatus(LifecycleError, ValueError):
    """Persisted status value is outside the known set."""

    def __init__(self, value: object) -> None:
        super().__init__(f"unknown status value: {value!r}")
        self.value = value


class StepFailed(LifecycleError):
    """A workflow returned a non-zero exit code."""

    def __init__(self, workflow: str, exit_code: int) -> None:
        super().__init__(f"workflow failed: {workflow} returned exit code {exit_code}")
        self.workflow = workflow
        self.exit_code = exit_code


class StatusPersistError(LifecycleError):
    """Workflow succeeded but its status transition could not be written.

    The story is left with the workflow's effects applied and the old status
    recorded.
    """

    def __init__(self, story_key: str, status: str) -> None:
        super().__init__(f"failed to update status of {story_key} to {status}")
        self.story_key = story_key
        self.status = status


class LifecycleCancelled(LifecycleError):
    """Shutdown was requested before the next step started."""

    def __init__(self, story_key: str, completed_steps: int, total_steps: int) -> None:
        super().__init__(
            f"lifecycle for {story_key} cancelled after {completed_steps}/{total_steps} steps",
        )
        self.story_key = story_key
        self.completed_steps = completed_steps
        self.total_steps = total_steps


class CheckpointNotFound(LifecycleError):
    """No checkpoint is stored; a fresh start."""


class CheckpointCorrupt(LifecycleError):
    """A checkpoint exists but cannot be read back."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"checkpoint {path} is corrupt: {reason}")
        self.path = path
        self.reason = reason


class CheckpointMismatch(LifecycleError):
    """Stored checkpoint belongs to another story than the one being resumed."""

    def __init__(self, requested: str, found: str) -> None:
        super().__init__(
            f"checkpoint belongs to story {found}, not {requested}; "
            "finish or clear that run before resuming another story",
        )
        self.requested = requested
        self.found = found


class NothingToResume(LifecycleError):
    """Resume was requested but no interrupted run is recorded."""

    def __init__(self, story_key: str) -> None:
        super().__init__(f"no interrupted run recorded for story {story_key}")
        self.story_key = story_key
