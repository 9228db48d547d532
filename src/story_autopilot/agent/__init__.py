"""Agent CLI execution and stream-json event parsing."""

from story_autopilot.agent.backend import (
    TIMEOUT_EXIT_CODE,
    AgentRunError,
    AgentRunRequest,
    AgentRunResult,
    CliAgentExecutor,
    build_run_args,
)
from story_autopilot.agent.events import EventKind, StreamEvent, parse_stream_line

__all__ = [
    "TIMEOUT_EXIT_CODE",
    "AgentRunError",
    "AgentRunRequest",
    "AgentRunResult",
    "CliAgentExecutor",
    "EventKind",
    "StreamEvent",
    "build_run_args",
    "parse_stream_line",
]
