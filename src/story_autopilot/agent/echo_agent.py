"""Local stand-in agent that emits stream-json events for integration tests."""

from __future__ import annotations

import argparse
import json
import os
import sys


def main(argv: list[str] | None = None) -> int:
    """Echo the prompt back as an agent session; fail when it contains a marker."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--prompt", required=True)
    args = parser.parse_args(argv)

    _emit({"type": "system", "subtype": "init", "session_id": "echo"})
    _emit(
        {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "text", "text": args.prompt},
                    {
                        "type": "tool_use",
                        "name": "Bash",
                        "input": {"command": "echo ok", "description": "Echo"},
                    },
                ],
            },
        },
    )
    _emit({"type": "user", "tool_use_result": {"stdout": "ok", "stderr": ""}})

    fail_marker = os.getenv("STORY_AUTOPILOT_ECHO_FAIL_ON", "")
    failed = bool(fail_marker) and fail_marker in args.prompt
    _emit({"type": "result", "subtype": "error" if failed else "success", "is_error": failed})
    if failed:
        print(f"echo agent: failing on marker {fail_marker!r}", file=sys.stderr)
        return 2
    return 0


def _emit(payload: dict[str, object]) -> None:
    sys.stdout.write(json.dumps(payload) + "\n")
    sys.stdout.flush()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
