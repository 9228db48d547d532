"""Render workflow prompts and run them through the agent CLI."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from story_autopilot.agent.backend import AgentRunError, AgentRunRequest, CliAgentExecutor
from story_autopilot.agent.events import EventKind, StreamEvent
from story_autopilot.config import AgentSettings, OutputSettings, WorkflowSettings
from story_autopilot.output import Printer

logger = logging.getLogger(__name__)


class AgentWorkflowRunner:
    """Runs one named workflow for a story and reports the agent's exit code."""

    def __init__(
        self,
        *,
        executor: CliAgentExecutor,
        printer: Printer,
        agent: AgentSettings,
        output: OutputSettings,
        workflows: WorkflowSettings,
    ) -> None:
        self.executor = executor
        self.printer = printer
        self.agent = agent
        self.output = output
        self.workflows = workflows

    def run_single(
        self,
        workflow_name: str,
        story_key: str,
        *,
        shutdown_requested: Callable[[], bool] | None = None,
    ) -> int:
        try:
            prompt = self.workflows.get_prompt(workflow_name, story_key)
        except KeyError as error:
            self.printer.error(str(error.args[0]))
            return 1
        return self.run_prompt(
            prompt,
            label=f"{workflow_name}: {story_key}",
            env={
                "STORY_AUTOPILOT_WORKFLOW": workflow_name,
                "STORY_AUTOPILOT_STORY_KEY": story_key,
            },
            shutdown_requested=shutdown_requested,
        )

    def run_prompt(
        self,
        prompt: str,
        *,
        label: str,
        env: dict[str, str] | None = None,
        shutdown_requested: Callable[[], bool] | None = None,
    ) -> int:
        self.printer.command_header(label, prompt, self.output.truncate_length)
        started = time.monotonic()
        request = AgentRunRequest(
            prompt=prompt,
            command_template=self.agent.command_template,
            timeout_seconds=self.agent.timeout_seconds,
            shutdown_requested=shutdown_requested,
            graceful_shutdown_seconds=self.agent.graceful_shutdown_seconds,
            env=env or {},
        )
        try:
            result = self.executor.run(request, self._handle_event)
        except AgentRunError as error:
            logger.error("Agent run for %s failed to start: %s", label, error)
            self.printer.error(str(error))
            exit_code = 1
        else:
            exit_code = result.exit_code
            if result.timed_out:
                self.printer.error(f"agent timed out after {self.agent.timeout_seconds}s")
            elif result.cancelled:
                self.printer.error("agent stopped: shutdown requested")
            if not result.success and result.stderr_tail:
                logger.warning("Agent stderr for %s:\n%s", label, "\n".join(result.stderr_tail))

        self.printer.command_footer(
            time.monotonic() - started,
            success=exit_code == 0,
            exit_code=exit_code,
        )
        return exit_code

    def _handle_event(self, event: StreamEvent) -> None:
        match event.kind:
            case EventKind.SESSION_START:
                self.printer.session_start()
            case EventKind.TEXT:
                self.printer.text(event.text)
            case EventKind.TOOL_USE:
                self.printer.tool_use(
                    event.tool_name,
                    event.tool_description,
                    event.tool_command,
                    event.tool_file_path,
                )
            case EventKind.TOOL_RESULT:
                self.printer.tool_result(
                    event.tool_stdout,
                    event.tool_stderr,
                    self.output.truncate_lines,
                )
            case EventKind.SESSION_COMPLETE:
                self.printer.session_end(success=not event.is_error)
