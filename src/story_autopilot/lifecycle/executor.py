"""Run a story through its remaining workflows, checkpointing on failure."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import NoReturn, Protocol

from story_autopilot.lifecycle.checkpoint import CheckpointStore, RunCheckpoint
from story_autopilot.lifecycle.errors import LifecycleCancelled, StatusPersistError, StepFailed
from story_autopilot.lifecycle.router import LifecycleStep, get_lifecycle
from story_autopilot.status.models import StoryStatus

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]
"""Called as ``callback(step_index, total_steps, workflow)`` with a 1-based index."""


class WorkflowRunner(Protocol):
    """Executes one named workflow for a story and returns its exit code."""

    def run_single(
        self,
        workflow_name: str,
        story_key: str,
        *,
        shutdown_requested: Callable[[], bool] | None = None,
    ) -> int:
        """Return 0 on success, anything else on failure."""


class StatusReader(Protocol):
    def get_story_status(self, story_key: str) -> StoryStatus | str:
        """Return the persisted status or raise when the story cannot be looked up."""


class StatusWriter(Protocol):
    def update_status(self, story_key: str, new_status: StoryStatus) -> None:
        """Persist ``new_status``; raise on invalid status or write failure."""


class LifecycleExecutor:
    """Drives a story from its current status to done, one workflow at a time.

    Execution is fail-fast: the first failing workflow stops the run, records a
    checkpoint and raises :class:`StepFailed`. Status is written after each
    successful workflow, so re-running picks up where the failed run stopped.
    """

    def __init__(
        self,
        runner: WorkflowRunner,
        status_reader: StatusReader,
        status_writer: StatusWriter,
        checkpoints: CheckpointStore | None = None,
    ) -> None:
        self.runner = runner
        self.status_reader = status_reader
        self.status_writer = status_writer
        self.checkpoints = checkpoints
        self._progress_callback: ProgressCallback | None = None

    def set_progress_callback(self, callback: ProgressCallback | None) -> None:
        self._progress_callback = callback

    def execute(
        self,
        story_key: str,
        *,
        shutdown_requested: Callable[[], bool] | None = None,
    ) -> None:
        """Run every remaining workflow for ``story_key``.

        Raises :class:`StoryComplete` for done stories, :class:`UnknownStatus`
        for corrupt status values, :class:`StepFailed` when a workflow exits
        non-zero, :class:`StatusPersistError` when a status write fails and
        :class:`LifecycleCancelled` when shutdown is requested between steps.
        Status lookup errors propagate unchanged.
        """

        start_status = self.status_reader.get_story_status(story_key)
        steps = get_lifecycle(start_status)
        total_steps = len(steps)
        logger.info(
            "Lifecycle start: story=%s status=%s steps=%d",
            story_key,
            _status_text(start_status),
            total_steps,
        )

        for index, step in enumerate(steps):
            if shutdown_requested is not None and shutdown_requested():
                logger.warning("Lifecycle cancelled before %s for %s", step.workflow, story_key)
                raise LifecycleCancelled(story_key, index, total_steps)

            if self._progress_callback is not None:
                self._progress_callback(index + 1, total_steps, step.workflow)

            exit_code = self.runner.run_single(
                step.workflow,
                story_key,
                shutdown_requested=shutdown_requested,
            )
            if exit_code != 0:
                self._fail_step(
                    story_key=story_key,
                    step=step,
                    step_index=index,
                    total_steps=total_steps,
                    start_status=StoryStatus(start_status),
                    exit_code=exit_code,
                )

            try:
                self.status_writer.update_status(story_key, step.next_status)
            except Exception as error:  # noqa: BLE001
                logger.warning(
                    "Workflow %s succeeded but status update for %s failed: %s",
                    step.workflow,
                    story_key,
                    error,
                )
                raise StatusPersistError(story_key, step.next_status.value) from error
            logger.info(
                "Step %d/%d done: story=%s workflow=%s status=%s",
                index + 1,
                total_steps,
                story_key,
                step.workflow,
                step.next_status.value,
            )

        if self.checkpoints is not None:
            self.checkpoints.clear_for(story_key)
        logger.info("Lifecycle complete: story=%s", story_key)

    def get_steps(self, story_key: str) -> tuple[LifecycleStep, ...]:
        """Return the steps ``execute`` would run, without running anything."""

        return get_lifecycle(self.status_reader.get_story_status(story_key))

    def _fail_step(  # noqa: PLR0913
        self,
        *,
        story_key: str,
        step: LifecycleStep,
        step_index: int,
        total_steps: int,
        start_status: StoryStatus,
        exit_code: int,
    ) -> NoReturn:
        logger.warning(
            "Workflow %s failed for %s with exit code %d at step %d/%d",
            step.workflow,
            story_key,
            exit_code,
            step_index + 1,
            total_steps,
        )
        failure = StepFailed(step.workflow, exit_code)
        if self.checkpoints is None:
            raise failure
        checkpoint = RunCheckpoint(
            story_key=story_key,
            step_index=step_index,
            total_steps=total_steps,
            start_status=start_status,
            failed_workflow=step.workflow,
        )
        try:
            self.checkpoints.save(checkpoint)
        except OSError as error:
            logger.error("Failed to save checkpoint for %s: %s", story_key, error)
            raise failure from error
        raise failure


def _status_text(status: StoryStatus | str) -> str:
    if isinstance(status, StoryStatus):
        return status.value
    return status
