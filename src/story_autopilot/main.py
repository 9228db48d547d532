"""CLI entrypoint for story-autopilot."""

import logging
from pathlib import Path

import rich_click as click

from story_autopilot import __version__
from story_autopilot.config import env_log_level
from story_autopilot.controllers import (
    CommandResult,
    EpicCommand,
    LifecycleCliController,
    QueueCommand,
    RunStoryCommand,
    WorkflowCommand,
)

click.rich_click.USE_MARKDOWN = True
LIFECYCLE_CONTROLLER = LifecycleCliController()


@click.group()
@click.version_option(version=__version__, prog_name="story-autopilot")
@click.option(
    "--project-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project root holding the sprint status file. Defaults to STORY_AUTOPILOT_PROJECT_DIR.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. Defaults to STORY_AUTOPILOT_LOG_LEVEL or WARNING.",
)
@click.pass_context
def story_autopilot(ctx: click.Context, project_dir: Path | None, log_level: str | None) -> None:
    """Run sprint stories through their workflow lifecycle with an AI agent.

    | status | workflows |
    |---|---|
    | backlog | create-story → dev-story → code-review → git-commit |
    | ready-for-dev, in-progress | dev-story → code-review → git-commit |
    | review | code-review → git-commit |
    | done | skipped |
    """

    level = log_level or env_log_level("STORY_AUTOPILOT_LOG_LEVEL", default="WARNING")
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = project_dir


@story_autopilot.command("run")
@click.argument("story_key")
@click.option("--dry-run", is_flag=True, help="Show the workflows that would run, run nothing.")
@click.option("--resume", is_flag=True, help="Continue the story's previously failed run.")
@click.pass_obj
def run_story(project_dir: Path | None, story_key: str, dry_run: bool, resume: bool) -> None:
    """Run one story from its current status to done.

    Each successful workflow advances the story in the sprint status file. The
    first failure stops the run and records a checkpoint for `--resume`.
    """

    if dry_run and resume:
        raise click.UsageError("--dry-run and --resume cannot be combined.")
    _finish(
        LIFECYCLE_CONTROLLER.run_story(
            RunStoryCommand(
                project_dir=project_dir,
                story_key=story_key,
                dry_run=dry_run,
                resume=resume,
            ),
        ),
    )


@story_autopilot.command("queue")
@click.argument("story_keys", nargs=-1, required=True)
@click.option("--dry-run", is_flag=True, help="Show the workflows that would run, run nothing.")
@click.pass_obj
def run_queue(project_dir: Path | None, story_keys: tuple[str, ...], dry_run: bool) -> None:
    """Run several stories to completion, one after another.

    Done stories are skipped. The queue stops at the first failing story.
    """

    _finish(
        LIFECYCLE_CONTROLLER.run_queue(
            QueueCommand(project_dir=project_dir, story_keys=story_keys, dry_run=dry_run),
        ),
    )


@story_autopilot.command("epic")
@click.argument("epic_id")
@click.option("--dry-run", is_flag=True, help="Show the workflows that would run, run nothing.")
@click.pass_obj
def run_epic(project_dir: Path | None, epic_id: str, dry_run: bool) -> None:
    """Run every story of an epic (`{epic}-{N}-*`) in story-number order.

    Done stories are skipped. The epic stops at the first failing story.
    """

    _finish(
        LIFECYCLE_CONTROLLER.run_epic(
            EpicCommand(project_dir=project_dir, epic_id=epic_id, dry_run=dry_run),
        ),
    )


@story_autopilot.command("workflow")
@click.argument("workflow_name")
@click.argument("story_key")
@click.pass_obj
def run_workflow(project_dir: Path | None, workflow_name: str, story_key: str) -> None:
    """Run a single named workflow for a story without touching its status."""

    _finish(
        LIFECYCLE_CONTROLLER.run_workflow(
            WorkflowCommand(
                project_dir=project_dir,
                workflow_name=workflow_name,
                story_key=story_key,
            ),
        ),
    )


def _finish(result: CommandResult) -> None:
    if not result.success:
        raise click.ClickException(result.message or "Command failed.")


if __name__ == "__main__":  # pragma: no cover
    story_autopilot()
