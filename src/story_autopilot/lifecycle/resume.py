"""Resume a story whose previous lifecycle run failed part-way."""

from __future__ import annotations

import logging
from collections.abc import Callable

from story_autopilot.lifecycle.checkpoint import CheckpointStore, RunCheckpoint
from story_autopilot.lifecycle.errors import (
    CheckpointMismatch,
    CheckpointNotFound,
    NothingToResume,
)
from story_autopilot.lifecycle.executor import LifecycleExecutor

logger = logging.getLogger(__name__)


def load_resume_checkpoint(checkpoints: CheckpointStore, story_key: str) -> RunCheckpoint:
    """Return the checkpoint for ``story_key``.

    Raises :class:`NothingToResume` when no checkpoint exists and
    :class:`CheckpointMismatch` when it belongs to another story. A corrupt
    checkpoint propagates as :class:`CheckpointCorrupt`; it is never discarded.
    """

    try:
        checkpoint = checkpoints.load()
    except CheckpointNotFound as error:
        raise NothingToResume(story_key) from error
    if checkpoint.story_key != story_key:
        raise CheckpointMismatch(requested=story_key, found=checkpoint.story_key)
    return checkpoint


def resume_story(
    executor: LifecycleExecutor,
    checkpoints: CheckpointStore,
    story_key: str,
    *,
    on_checkpoint: Callable[[RunCheckpoint], None] | None = None,
    shutdown_requested: Callable[[], bool] | None = None,
) -> RunCheckpoint:
    """Continue an interrupted run for ``story_key``.

    The remaining steps are re-derived from the persisted status, which already
    reflects every step completed before the failure; the checkpoint only
    confirms there was an interrupted run and where it stopped.
    """

    checkpoint = load_resume_checkpoint(checkpoints, story_key)
    logger.info(
        "Resuming story=%s from step %d/%d (failed workflow=%s)",
        story_key,
        checkpoint.step_index + 1,
        checkpoint.total_steps,
        checkpoint.failed_workflow,
    )
    if on_checkpoint is not None:
        on_checkpoint(checkpoint)
    executor.execute(story_key, shutdown_requested=shutdown_requested)
    return checkpoint
