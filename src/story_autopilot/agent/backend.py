"""Subprocess runner for the agent CLI with streamed JSON events."""

from __future__ import annotations

import logging
import os
import queue
import shlex
import subprocess
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import IO

from story_autopilot.agent.events import StreamEvent, parse_stream_line

TIMEOUT_EXIT_CODE = 124
STDERR_TAIL_LINES = 20
OUTPUT_DRAIN_SECONDS = 1.0

logger = logging.getLogger(__name__)

EventHandler = Callable[[StreamEvent], None]


class AgentRunError(RuntimeError):
    """Agent CLI could not be started, with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


@dataclass(slots=True)
class AgentRunRequest:
    """Inputs required to run one agent session."""

    prompt: str
    command_template: str
    timeout_seconds: int
    shutdown_requested: Callable[[], bool] | None = None
    graceful_shutdown_seconds: int | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class AgentRunResult:
    """Outcome of one agent session."""

    exit_code: int
    timed_out: bool = False
    cancelled: bool = False
    stderr_tail: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CliAgentExecutor:
    """Runs the agent command, forwarding each parsed stdout event to a handler."""

    def run(self, request: AgentRunRequest, on_event: EventHandler) -> AgentRunResult:
        run_args = build_run_args(request.command_template, prompt=request.prompt)
        env = os.environ.copy()
        env.update(request.env)

        try:
            process = subprocess.Popen(  # noqa: S603
                run_args,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as error:
            raise AgentRunError(
                f"Agent command not found: {run_args[0]}",
                transient=False,
            ) from error
        except OSError as error:
            raise AgentRunError(
                f"Agent command failed to start: {error}",
                transient=True,
            ) from error

        logger.debug("Agent started: pid=%s command=%s", process.pid, run_args[0])
        return _stream_until_exit(process=process, request=request, on_event=on_event)


def build_run_args(command_template: str, *, prompt: str) -> list[str]:
    """Render ``command_template`` with a shell-quoted ``{prompt}`` into an argv list."""

    stripped = command_template.strip()
    if not stripped:
        raise AgentRunError("Agent command template is empty.", transient=False)
    if "{prompt}" not in stripped:
        raise AgentRunError("Agent command template must include {prompt}.", transient=False)
    try:
        rendered = stripped.format(prompt=shlex.quote(prompt))
    except (KeyError, IndexError) as error:
        raise AgentRunError(
            f"Unsupported command template placeholder: {error}",
            transient=False,
        ) from error

    argv = shlex.split(rendered)
    if not argv:
        raise AgentRunError("Agent command template rendered empty command.", transient=False)
    return argv


_EOF = object()


def _pump_lines(stream: IO[str], sink: queue.Queue[object]) -> None:
    try:
        for line in stream:
            sink.put(line)
    finally:
        sink.put(_EOF)


def _collect_tail(stream: IO[str], tail: deque[str]) -> None:
    for line in stream:
        tail.append(line.rstrip("\n"))


def _stream_until_exit(
    *,
    process: subprocess.Popen[str],
    request: AgentRunRequest,
    on_event: EventHandler,
) -> AgentRunResult:
    stdout_lines: queue.Queue[object] = queue.Queue()
    stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
    assert process.stdout is not None
    assert process.stderr is not None

    stdout_thread = threading.Thread(
        target=_pump_lines,
        args=(process.stdout, stdout_lines),
        daemon=True,
    )
    stderr_thread = threading.Thread(
        target=_collect_tail,
        args=(process.stderr, stderr_tail),
        daemon=True,
    )
    stdout_thread.start()
    stderr_thread.start()

    try:
        return _poll_until_exit(
            process=process,
            request=request,
            on_event=on_event,
            stdout_lines=stdout_lines,
            stderr_thread=stderr_thread,
            stderr_tail=stderr_tail,
        )
    except BaseException:
        logger.warning("Agent output handling failed, terminating agent pid=%s", process.pid)
        _terminate_process(process)
        raise


def _poll_until_exit(  # noqa: PLR0913
    *,
    process: subprocess.Popen[str],
    request: AgentRunRequest,
    on_event: EventHandler,
    stdout_lines: queue.Queue[object],
    stderr_thread: threading.Thread,
    stderr_tail: deque[str],
) -> AgentRunResult:
    start_monotonic = time.monotonic()
    shutdown_deadline: float | None = None
    graceful_seconds = max(0, request.graceful_shutdown_seconds or 0)
    stdout_open = True

    while True:
        if stdout_open:
            try:
                item = stdout_lines.get(timeout=0.1)
            except queue.Empty:
                item = None
            if item is _EOF:
                stdout_open = False
            elif isinstance(item, str):
                _dispatch_line(item, on_event)
        else:
            time.sleep(0.05)

        returncode = process.poll()
        if returncode is not None:
            # A background child of the agent may keep stdout open after exit.
            if stdout_open:
                _drain_lines(stdout_lines, on_event)
            stderr_thread.join(timeout=OUTPUT_DRAIN_SECONDS)
            return AgentRunResult(exit_code=returncode, stderr_tail=list(stderr_tail))

        now = time.monotonic()
        if now - start_monotonic >= request.timeout_seconds:
            logger.warning("Agent timed out after %ss, terminating", request.timeout_seconds)
            _terminate_process(process)
            return AgentRunResult(
                exit_code=TIMEOUT_EXIT_CODE,
                timed_out=True,
                stderr_tail=list(stderr_tail),
            )

        if request.shutdown_requested is not None and request.shutdown_requested():
            if shutdown_deadline is None:
                shutdown_deadline = now + graceful_seconds
            if now >= shutdown_deadline:
                logger.warning("Shutdown requested, terminating agent pid=%s", process.pid)
                _terminate_process(process)
                return AgentRunResult(
                    exit_code=TIMEOUT_EXIT_CODE,
                    cancelled=True,
                    stderr_tail=list(stderr_tail),
                )


def _dispatch_line(line: str, on_event: EventHandler) -> None:
    for event in parse_stream_line(line):
        on_event(event)


def _drain_lines(stdout_lines: queue.Queue[object], on_event: EventHandler) -> None:
    """Forward lines still queued after exit, waiting at most ``OUTPUT_DRAIN_SECONDS``."""

    deadline = time.monotonic() + OUTPUT_DRAIN_SECONDS
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug("Agent stdout still open after exit, not waiting for EOF")
            return
        try:
            item = stdout_lines.get(timeout=remaining)
        except queue.Empty:
            continue
        if item is _EOF:
            return
        if isinstance(item, str):
            _dispatch_line(item, on_event)


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)
