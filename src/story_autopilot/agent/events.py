"""Parse the agent CLI's stream-json output into display events."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    SESSION_START = "session_start"
    TEXT = "text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    SESSION_COMPLETE = "session_complete"


@dataclass(slots=True)
class StreamEvent:
    """One displayable event from an agent session."""

    kind: EventKind
    text: str = ""
    tool_name: str = ""
    tool_description: str = ""
    tool_command: str = ""
    tool_file_path: str = ""
    tool_stdout: str = ""
    tool_stderr: str = ""
    is_error: bool = False


def parse_stream_line(line: str) -> list[StreamEvent]:
    """Decode one stdout line; non-JSON and unrecognized lines yield no events."""

    stripped = line.strip()
    if not stripped:
        return []
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        return []
    if not isinstance(payload, dict):
        return []

    event_type = payload.get("type")
    if event_type == "system":
        if payload.get("subtype") == "init":
            return [StreamEvent(kind=EventKind.SESSION_START)]
        return []
    if event_type == "assistant":
        return _assistant_events(payload)
    if event_type == "user":
        return _tool_result_events(payload)
    if event_type == "result":
        return [
            StreamEvent(
                kind=EventKind.SESSION_COMPLETE,
                text=str(payload.get("result") or ""),
                is_error=bool(payload.get("is_error", False)),
            ),
        ]
    return []


def _content_blocks(payload: dict[str, Any]) -> list[dict[str, Any]]:
    message = payload.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def _assistant_events(payload: dict[str, Any]) -> list[StreamEvent]:
    events: list[StreamEvent] = []
    for block in _content_blocks(payload):
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text")
            if isinstance(text, str) and text:
                events.append(StreamEvent(kind=EventKind.TEXT, text=text))
        elif block_type == "tool_use":
            tool_input = block.get("input")
            if not isinstance(tool_input, dict):
                tool_input = {}
            events.append(
                StreamEvent(
                    kind=EventKind.TOOL_USE,
                    tool_name=str(block.get("name") or ""),
                    tool_description=str(tool_input.get("description") or ""),
                    tool_command=str(tool_input.get("command") or ""),
                    tool_file_path=str(tool_input.get("file_path") or ""),
                ),
            )
    return events


def _tool_result_events(payload: dict[str, Any]) -> list[StreamEvent]:
    result = payload.get("tool_use_result")
    if isinstance(result, dict):
        return [
            StreamEvent(
                kind=EventKind.TOOL_RESULT,
                tool_stdout=str(result.get("stdout") or ""),
                tool_stderr=str(result.get("stderr") or ""),
                is_error=bool(result.get("interrupted", False)),
            ),
        ]

    events: list[StreamEvent] = []
    for block in _content_blocks(payload):
        if block.get("type") != "tool_result":
            continue
        content = block.get("content")
        if isinstance(content, list):
            content = "\n".join(
                str(part.get("text", "")) for part in content if isinstance(part, dict)
            )
        events.append(
            StreamEvent(
                kind=EventKind.TOOL_RESULT,
                tool_stdout=str(content or ""),
                is_error=bool(block.get("is_error", False)),
            ),
        )
    return events
