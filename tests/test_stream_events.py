from __future__ import annotations

import json

import allure
import pytest

from story_autopilot.agent import EventKind, parse_stream_line

pytestmark = [
    allure.epic("Agent"),
    allure.feature("Stream Events"),
]


def _line(payload: dict[str, object]) -> str:
    return json.dumps(payload) + "\n"


def test_system_init_starts_session() -> None:
    events = parse_stream_line(_line({"type": "system", "subtype": "init", "session_id": "x"}))

    assert [event.kind for event in events] == [EventKind.SESSION_START]


def test_assistant_message_yields_text_and_tool_use() -> None:
    events = parse_stream_line(
        _line(
            {
                "type": "assistant",
                "message": {
                    "content": [
                        {"type": "text", "text": "Reading the story file."},
                        {
                            "type": "tool_use",
                            "name": "Read",
                            "input": {"file_path": "docs/stories/6-1.md"},
                        },
                        {"type": "thinking", "thinking": "hidden"},
                    ],
                },
            },
        ),
    )

    assert [event.kind for event in events] == [EventKind.TEXT, EventKind.TOOL_USE]
    assert events[0].text == "Reading the story file."
    assert events[1].tool_name == "Read"
    assert events[1].tool_file_path == "docs/stories/6-1.md"
    assert events[1].tool_command == ""


def test_user_tool_use_result() -> None:
    events = parse_stream_line(
        _line(
            {
                "type": "user",
                "tool_use_result": {"stdout": "3 passed", "stderr": "warn", "interrupted": True},
            },
        ),
    )

    assert len(events) == 1
    assert events[0].kind is EventKind.TOOL_RESULT
    assert events[0].tool_stdout == "3 passed"
    assert events[0].tool_stderr == "warn"
    assert events[0].is_error is True


def test_user_tool_result_content_blocks() -> None:
    events = parse_stream_line(
        _line(
            {
                "type": "user",
                "message": {
                    "content": [
                        {
                            "type": "tool_result",
                            "content": [
                                {"type": "text", "text": "a"},
                                {"type": "text", "text": "b"},
                            ],
                            "is_error": False,
                        },
                    ],
                },
            },
        ),
    )

    assert [event.tool_stdout for event in events] == ["a\nb"]


def test_result_completes_session() -> None:
    events = parse_stream_line(_line({"type": "result", "is_error": True, "result": "boom"}))

    assert events[0].kind is EventKind.SESSION_COMPLETE
    assert events[0].is_error is True
    assert events[0].text == "boom"


@pytest.mark.parametrize(
    "line",
    ["", "   \n", "plain log output\n", "[1, 2]\n", _line({"type": "stream_event"})],
)
def test_unrecognized_lines_yield_nothing(line: str) -> None:
    assert parse_stream_line(line) == []
