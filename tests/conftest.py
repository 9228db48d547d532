"""Shared test fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from story_autopilot.status.reader import DEFAULT_STATUS_PATH

ECHO_AGENT_COMMAND_TEMPLATE = (
    f"{sys.executable} -m story_autopilot.agent.echo_agent --prompt {{prompt}}"
)


@pytest.fixture()
def write_status(tmp_path: Path) -> Callable[[str], Path]:
    """Write a sprint status file under ``tmp_path`` and return its path."""

    def _write(content: str) -> Path:
        status_path = tmp_path / DEFAULT_STATUS_PATH
        status_path.parent.mkdir(parents=True, exist_ok=True)
        status_path.write_text(content, "utf-8")
        return status_path

    return _write


@pytest.fixture()
def echo_agent(monkeypatch, tmp_path: Path) -> Path:
    """Point the agent command at the local echo agent and isolate settings."""

    monkeypatch.setenv("STORY_AUTOPILOT_AGENT_COMMAND_TEMPLATE", ECHO_AGENT_COMMAND_TEMPLATE)
    monkeypatch.setenv("STORY_AUTOPILOT_AGENT_TIMEOUT_SECONDS", "60")
    monkeypatch.setenv("STORY_AUTOPILOT_CONFIG", str(tmp_path / "missing-config.yaml"))
    monkeypatch.delenv("STORY_AUTOPILOT_ECHO_FAIL_ON", raising=False)
    monkeypatch.delenv("STORY_AUTOPILOT_STATUS_PATH", raising=False)
    monkeypatch.delenv("STORY_AUTOPILOT_CHECKPOINT_PATH", raising=False)
    return tmp_path


@pytest.fixture()
def echo_command_template() -> str:
    return ECHO_AGENT_COMMAND_TEMPLATE
