"""Controllers for lifecycle CLI commands."""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from story_autopilot.agent.backend import CliAgentExecutor
from story_autopilot.config import Settings
from story_autopilot.lifecycle import (
    CheckpointStore,
    LifecycleError,
    LifecycleExecutor,
    StoryComplete,
    resume_story,
)
from story_autopilot.output import Printer
from story_autopilot.status import (
    NoEpicStories,
    SprintStatusReader,
    SprintStatusWriter,
    StatusFileError,
    StoryNotFound,
)
from story_autopilot.workflow import AgentWorkflowRunner

logger = logging.getLogger(__name__)

_RUN_ERRORS = (LifecycleError, StatusFileError, StoryNotFound)


@dataclass(slots=True)
class RunStoryCommand:
    """CLI input for a single story lifecycle run."""

    project_dir: Path | None
    story_key: str
    dry_run: bool = False
    resume: bool = False


@dataclass(slots=True)
class QueueCommand:
    """CLI input for running several stories in order."""

    project_dir: Path | None
    story_keys: tuple[str, ...]
    dry_run: bool = False


@dataclass(slots=True)
class EpicCommand:
    """CLI input for running every story of an epic."""

    project_dir: Path | None
    epic_id: str
    dry_run: bool = False


@dataclass(slots=True)
class WorkflowCommand:
    """CLI input for one named workflow, without status routing."""

    project_dir: Path | None
    workflow_name: str
    story_key: str


@dataclass(slots=True)
class CommandResult:
    """Outcome to map onto the process exit status."""

    success: bool
    message: str | None = None


@dataclass(slots=True)
class LifecycleApp:
    """Wired collaborators for one CLI invocation."""

    settings: Settings
    printer: Printer
    runner: AgentWorkflowRunner
    status_reader: SprintStatusReader
    status_writer: SprintStatusWriter
    checkpoints: CheckpointStore
    executor: LifecycleExecutor


def build_app(settings: Settings, printer: Printer | None = None) -> LifecycleApp:
    printer = printer or Printer()
    runner = AgentWorkflowRunner(
        executor=CliAgentExecutor(),
        printer=printer,
        agent=settings.agent,
        output=settings.output,
        workflows=settings.workflows,
    )
    status_reader = SprintStatusReader(settings.project_dir, settings.status_path)
    status_writer = SprintStatusWriter(settings.project_dir, settings.status_path)
    checkpoints = CheckpointStore(settings.checkpoint_file)
    executor = LifecycleExecutor(runner, status_reader, status_writer, checkpoints)
    executor.set_progress_callback(printer.step_start)
    return LifecycleApp(
        settings=settings,
        printer=printer,
        runner=runner,
        status_reader=status_reader,
        status_writer=status_writer,
        checkpoints=checkpoints,
        executor=executor,
    )


class LifecycleCliController:
    """Coordinates story, queue, epic and workflow commands."""

    def __init__(self, app_factory: Callable[[Path | None], LifecycleApp] | None = None) -> None:
        self._app_factory = app_factory or _default_app

    def run_story(self, command: RunStoryCommand) -> CommandResult:
        app = self._app_factory(command.project_dir)
        if command.dry_run:
            return _preview(app, (command.story_key,))

        started = time.monotonic()
        with _shutdown_flag() as shutdown_requested:
            try:
                if command.resume:
                    resume_story(
                        app.executor,
                        app.checkpoints,
                        command.story_key,
                        on_checkpoint=app.printer.checkpoint_report,
                        shutdown_requested=shutdown_requested,
                    )
                else:
                    app.executor.execute(
                        command.story_key,
                        shutdown_requested=shutdown_requested,
                    )
            except StoryComplete:
                app.printer.story_skipped(command.story_key)
                return CommandResult(success=True)
            except _RUN_ERRORS as error:
                app.printer.story_failed(command.story_key, str(error))
                return CommandResult(success=False, message=str(error))

        app.printer.story_complete(command.story_key, time.monotonic() - started)
        return CommandResult(success=True)

    def run_queue(self, command: QueueCommand) -> CommandResult:
        app = self._app_factory(command.project_dir)
        return _run_batch(app, command.story_keys, dry_run=command.dry_run)

    def run_epic(self, command: EpicCommand) -> CommandResult:
        app = self._app_factory(command.project_dir)
        try:
            story_keys = app.status_reader.get_epic_stories(command.epic_id)
        except (NoEpicStories, StatusFileError) as error:
            app.printer.error(str(error))
            return CommandResult(success=False, message=str(error))
        return _run_batch(app, tuple(story_keys), dry_run=command.dry_run)

    def run_workflow(self, command: WorkflowCommand) -> CommandResult:
        app = self._app_factory(command.project_dir)
        with _shutdown_flag() as shutdown_requested:
            exit_code = app.runner.run_single(
                command.workflow_name,
                command.story_key,
                shutdown_requested=shutdown_requested,
            )
        if exit_code != 0:
            return CommandResult(
                success=False,
                message=f"workflow {command.workflow_name} returned exit code {exit_code}",
            )
        return CommandResult(success=True)


def _default_app(project_dir: Path | None) -> LifecycleApp:
    return build_app(Settings.from_env(project_dir=project_dir))


def _preview(app: LifecycleApp, story_keys: tuple[str, ...]) -> CommandResult:
    for story_key in story_keys:
        try:
            steps = app.executor.get_steps(story_key)
        except StoryComplete:
            app.printer.story_skipped(story_key)
            continue
        except _RUN_ERRORS as error:
            app.printer.story_failed(story_key, str(error))
            return CommandResult(success=False, message=str(error))
        app.printer.dry_run_plan(story_key, steps)
    return CommandResult(success=True)


def _run_batch(app: LifecycleApp, story_keys: tuple[str, ...], *, dry_run: bool) -> CommandResult:
    if dry_run:
        return _preview(app, story_keys)

    skipped = 0
    total = len(story_keys)
    with _shutdown_flag() as shutdown_requested:
        for position, story_key in enumerate(story_keys, start=1):
            app.printer.story_start(story_key, position, total)
            started = time.monotonic()
            try:
                app.executor.execute(story_key, shutdown_requested=shutdown_requested)
            except StoryComplete:
                app.printer.story_skipped(story_key)
                skipped += 1
                continue
            except _RUN_ERRORS as error:
                app.printer.story_failed(story_key, str(error))
                return CommandResult(success=False, message=str(error))
            app.printer.story_complete(story_key, time.monotonic() - started)

    app.printer.batch_summary(total, skipped)
    return CommandResult(success=True)


@contextmanager
def _shutdown_flag() -> Iterator[Callable[[], bool]]:
    """Yield a predicate that turns true after SIGINT/SIGTERM."""

    requested = False

    def _requested() -> bool:
        return requested

    if not hasattr(signal, "SIGINT"):
        yield _requested
        return

    def _handler(signum: int, _: object | None) -> None:
        nonlocal requested
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        logger.warning("Received %s, shutting down", name)
        requested = True

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)
    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield _requested
        return
    try:
        yield _requested
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
