"""Terminal rendering for agent sessions and lifecycle progress."""

from __future__ import annotations

from collections.abc import Sequence

import click

from story_autopilot.lifecycle.checkpoint import RunCheckpoint
from story_autopilot.lifecycle.router import LifecycleStep

DIVIDER = "─" * 60


def truncate_text(text: str, length: int) -> str:
    collapsed = " ".join(text.split())
    if length <= 0 or len(collapsed) <= length:
        return collapsed
    return collapsed[: max(0, length - 3)] + "..."


def truncate_lines(text: str, max_lines: int) -> list[str]:
    lines = text.rstrip("\n").splitlines()
    if max_lines <= 0 or len(lines) <= max_lines:
        return lines
    hidden = len(lines) - max_lines
    return [*lines[:max_lines], f"... ({hidden} more lines)"]


class Printer:
    """Formats agent events and lifecycle progress for the terminal."""

    def divider(self) -> None:
        click.echo(click.style(DIVIDER, dim=True))

    def session_start(self) -> None:
        click.echo(click.style("● Session started", fg="green"))

    def session_end(self, *, success: bool) -> None:
        if success:
            click.echo(click.style("● Session complete", fg="green"))
        else:
            click.echo(click.style("● Session ended with errors", fg="red"))

    def text(self, text: str) -> None:
        click.echo(text)

    def tool_use(self, name: str, description: str, command: str, file_path: str) -> None:
        header = f"⚙ {name}"
        if description:
            header = f"{header}: {description}"
        click.echo(click.style(header, fg="cyan"))
        if command:
            click.echo(click.style(f"  $ {command}", dim=True))
        if file_path:
            click.echo(click.style(f"  {file_path}", dim=True))

    def tool_result(self, stdout: str, stderr: str, max_lines: int) -> None:
        for line in truncate_lines(stdout, max_lines):
            click.echo(f"  {line}")
        for line in truncate_lines(stderr, max_lines):
            click.echo(click.style(f"  {line}", fg="red"))

    def command_header(self, label: str, prompt: str, truncate_length: int) -> None:
        self.divider()
        click.echo(click.style(f"▶ {label}", bold=True))
        click.echo(click.style(f"  {truncate_text(prompt, truncate_length)}", dim=True))
        self.divider()

    def command_footer(self, duration_seconds: float, *, success: bool, exit_code: int) -> None:
        self.divider()
        if success:
            click.echo(click.style(f"✓ Completed in {duration_seconds:.1f}s", fg="green"))
        else:
            click.echo(
                click.style(
                    f"✗ Failed after {duration_seconds:.1f}s (exit code {exit_code})",
                    fg="red",
                ),
            )

    def error(self, message: str) -> None:
        click.echo(click.style(f"Error: {message}", fg="red"))

    def step_start(self, step_index: int, total_steps: int, workflow: str) -> None:
        click.echo(click.style(f"[{step_index}/{total_steps}] {workflow}", bold=True))

    def story_start(
        self,
        story_key: str,
        position: int | None = None,
        total: int | None = None,
    ) -> None:
        prefix = f"({position}/{total}) " if position is not None and total is not None else ""
        click.echo(click.style(f"{prefix}Story {story_key}", bold=True, fg="blue"))

    def story_complete(self, story_key: str, duration_seconds: float) -> None:
        click.echo(
            click.style(
                f"Story {story_key} completed successfully in {duration_seconds:.1f}s",
                fg="green",
            ),
        )

    def story_skipped(self, story_key: str) -> None:
        click.echo(f"Story {story_key} is already complete, skipping")

    def story_failed(self, story_key: str, reason: str) -> None:
        click.echo(
            click.style(f"Error running lifecycle for story {story_key}: {reason}", fg="red"),
        )

    def dry_run_plan(self, story_key: str, steps: Sequence[LifecycleStep]) -> None:
        click.echo(f"Dry run for story {story_key}:")
        for index, step in enumerate(steps, start=1):
            click.echo(f"  {index}. {step.workflow} -> {step.next_status.value}")

    def checkpoint_report(self, checkpoint: RunCheckpoint) -> None:
        workflow = checkpoint.failed_workflow or "unknown workflow"
        click.echo(
            click.style(
                f"Resuming {checkpoint.story_key}: previous run failed at step "
                f"{checkpoint.step_index + 1}/{checkpoint.total_steps} ({workflow}), "
                f"started from {checkpoint.start_status.value}, "
                f"{checkpoint.remaining_steps} of {checkpoint.total_steps} steps remaining",
                fg="yellow",
            ),
        )

    def batch_summary(self, processed: int, skipped: int) -> None:
        click.echo(f"All {processed} stories processed ({skipped} skipped)")
