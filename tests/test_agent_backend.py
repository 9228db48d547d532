from __future__ import annotations

import shutil
import subprocess
import sys
import time

import allure
import pytest

from story_autopilot.agent import (
    TIMEOUT_EXIT_CODE,
    AgentRunError,
    AgentRunRequest,
    CliAgentExecutor,
    EventKind,
    StreamEvent,
    build_run_args,
)

pytestmark = [
    allure.epic("Agent"),
    allure.feature("CLI Backend"),
]


def test_build_run_args_keeps_prompt_as_single_argument() -> None:
    argv = build_run_args(
        "claude -p {prompt} --output-format stream-json",
        prompt="Work on story: 6-1 'schema'",
    )

    assert argv == [
        "claude",
        "-p",
        "Work on story: 6-1 'schema'",
        "--output-format",
        "stream-json",
    ]


@pytest.mark.parametrize(
    ("template", "message"),
    [
        ("", "empty"),
        ("claude -p", "{prompt}"),
        ("claude -p {prompt} {model}", "placeholder"),
    ],
)
def test_build_run_args_rejects_bad_templates(template: str, message: str) -> None:
    with pytest.raises(AgentRunError, match=message) as error:
        build_run_args(template, prompt="x")

    assert error.value.transient is False


def test_run_streams_events_from_agent(echo_command_template: str) -> None:
    events: list[StreamEvent] = []

    result = CliAgentExecutor().run(
        AgentRunRequest(
            prompt="Create story: 6-1-schema",
            command_template=echo_command_template,
            timeout_seconds=60,
        ),
        events.append,
    )

    assert result.exit_code == 0
    assert result.success
    assert not result.timed_out
    assert [event.kind for event in events] == [
        EventKind.SESSION_START,
        EventKind.TEXT,
        EventKind.TOOL_USE,
        EventKind.TOOL_RESULT,
        EventKind.SESSION_COMPLETE,
    ]
    assert events[1].text == "Create story: 6-1-schema"


def test_run_reports_non_zero_exit_and_stderr_tail(
    echo_command_template: str,
) -> None:
    result = CliAgentExecutor().run(
        AgentRunRequest(
            prompt="Review story: 6-2-api",
            command_template=echo_command_template,
            timeout_seconds=60,
            env={"STORY_AUTOPILOT_ECHO_FAIL_ON": "6-2-api"},
        ),
        lambda event: None,
    )

    assert result.exit_code == 2
    assert not result.success
    assert any("failing on marker" in line for line in result.stderr_tail)


def test_run_missing_binary_raises_non_transient_error() -> None:
    with pytest.raises(AgentRunError, match="not found") as error:
        CliAgentExecutor().run(
            AgentRunRequest(
                prompt="x",
                command_template="definitely-not-an-agent-binary-xyz {prompt}",
                timeout_seconds=5,
            ),
            lambda event: None,
        )

    assert error.value.transient is False


def test_run_times_out() -> None:
    template = f"{sys.executable} -c 'import time; time.sleep(30)' {{prompt}}"

    result = CliAgentExecutor().run(
        AgentRunRequest(prompt="x", command_template=template, timeout_seconds=1),
        lambda event: None,
    )

    assert result.timed_out
    assert result.exit_code == TIMEOUT_EXIT_CODE


def test_run_stops_on_shutdown_request() -> None:
    template = f"{sys.executable} -c 'import time; time.sleep(30)' {{prompt}}"

    result = CliAgentExecutor().run(
        AgentRunRequest(
            prompt="x",
            command_template=template,
            timeout_seconds=60,
            shutdown_requested=lambda: True,
            graceful_shutdown_seconds=0,
        ),
        lambda event: None,
    )

    assert result.cancelled
    assert result.exit_code == TIMEOUT_EXIT_CODE


requires_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")


@requires_sh
def test_run_returns_exit_code_when_background_child_holds_stdout() -> None:
    events: list[StreamEvent] = []
    started = time.monotonic()

    result = CliAgentExecutor().run(
        AgentRunRequest(
            prompt="x",
            command_template=(
                r"""sh -c "sleep 30 & echo '{{\"type\": \"system\", \"subtype\": \"init\"}}';"""
                r""" exit 0" {prompt}"""
            ),
            timeout_seconds=20,
        ),
        events.append,
    )

    assert result.exit_code == 0
    assert not result.timed_out
    assert time.monotonic() - started < 10
    assert [event.kind for event in events] == [EventKind.SESSION_START]


@requires_sh
def test_failing_event_handler_terminates_agent(monkeypatch) -> None:
    spawned: list[subprocess.Popen[str]] = []
    original_popen = subprocess.Popen

    def _tracking_popen(*args, **kwargs):
        process = original_popen(*args, **kwargs)
        spawned.append(process)
        return process

    monkeypatch.setattr(subprocess, "Popen", _tracking_popen)

    def _broken_pipe(event: StreamEvent) -> None:
        raise BrokenPipeError("stdout closed")

    with pytest.raises(BrokenPipeError):
        CliAgentExecutor().run(
            AgentRunRequest(
                prompt="x",
                command_template=(
                    r"""sh -c "echo '{{\"type\": \"system\", \"subtype\": \"init\"}}';"""
                    r""" exec sleep 30" {prompt}"""
                ),
                timeout_seconds=60,
            ),
            _broken_pipe,
        )

    assert len(spawned) == 1
    assert spawned[0].poll() is not None
