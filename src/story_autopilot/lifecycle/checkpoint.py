"""Durable record of an interrupted lifecycle run."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from story_autopilot.lifecycle.errors import CheckpointCorrupt, CheckpointNotFound
from story_autopilot.status.models import StoryStatus

CHECKPOINT_VERSION = 1
DEFAULT_CHECKPOINT_PATH = Path(".story-autopilot") / "checkpoint.json"

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunCheckpoint:
    """Position of a failed run: ``step_index`` is the 0-based index of the failed step."""

    story_key: str
    step_index: int
    total_steps: int
    start_status: StoryStatus
    failed_workflow: str | None = None
    saved_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def remaining_steps(self) -> int:
        return self.total_steps - self.step_index

    def to_payload(self) -> dict[str, Any]:
        return {
            "version": CHECKPOINT_VERSION,
            "story_key": self.story_key,
            "step_index": self.step_index,
            "total_steps": self.total_steps,
            "start_status": self.start_status.value,
            "failed_workflow": self.failed_workflow,
            "saved_at": self.saved_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> RunCheckpoint:
        """Validate a decoded JSON object; raises ``ValueError``/``TypeError`` on bad shape."""

        version = raw.get("version")
        if version != CHECKPOINT_VERSION:
            raise ValueError(f"unsupported checkpoint version: {version!r}")

        story_key = raw.get("story_key")
        if not isinstance(story_key, str) or not story_key.strip():
            raise ValueError("story_key must be a non-empty string")

        step_index = raw.get("step_index")
        total_steps = raw.get("total_steps")
        if not _is_int(step_index) or not _is_int(total_steps):
            raise TypeError("step_index and total_steps must be integers")
        if total_steps < 1 or not 0 <= step_index < total_steps:
            raise ValueError(f"step {step_index} out of range for {total_steps} steps")

        start_status = StoryStatus.parse(str(raw.get("start_status")))

        failed_workflow = raw.get("failed_workflow")
        if failed_workflow is not None and not isinstance(failed_workflow, str):
            raise TypeError("failed_workflow must be a string when provided")

        saved_at_raw = raw.get("saved_at")
        if not isinstance(saved_at_raw, str):
            raise TypeError("saved_at must be an ISO-8601 string")
        saved_at = datetime.fromisoformat(saved_at_raw)

        return cls(
            story_key=story_key,
            step_index=step_index,
            total_steps=total_steps,
            start_status=start_status,
            failed_workflow=failed_workflow,
            saved_at=saved_at,
        )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CheckpointStore:
    """Single-record JSON checkpoint file written with temp-file-then-rename."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, checkpoint: RunCheckpoint) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(checkpoint.to_payload(), ensure_ascii=False, indent=2, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            dir=self.path.parent,
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.info(
            "Checkpoint saved: story=%s step=%d/%d",
            checkpoint.story_key,
            checkpoint.step_index + 1,
            checkpoint.total_steps,
        )

    def load(self) -> RunCheckpoint:
        """Return the stored checkpoint.

        Raises :class:`CheckpointNotFound` when nothing is stored and
        :class:`CheckpointCorrupt` when the record cannot be decoded.
        """

        try:
            raw_text = self.path.read_text("utf-8")
        except FileNotFoundError as error:
            raise CheckpointNotFound(f"no checkpoint at {self.path}") from error
        except OSError as error:
            raise CheckpointCorrupt(self.path, str(error)) from error

        try:
            raw = json.loads(raw_text)
        except json.JSONDecodeError as error:
            raise CheckpointCorrupt(self.path, f"invalid JSON: {error}") from error
        if not isinstance(raw, dict):
            raise CheckpointCorrupt(self.path, "expected JSON object")

        try:
            return RunCheckpoint.from_payload(raw)
        except (TypeError, ValueError) as error:
            raise CheckpointCorrupt(self.path, str(error)) from error

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def clear_for(self, story_key: str) -> bool:
        """Remove the record only if it belongs to ``story_key``.

        A corrupt record is left in place for the resume path to report.
        """

        try:
            checkpoint = self.load()
        except (CheckpointNotFound, CheckpointCorrupt):
            return False
        if checkpoint.story_key != story_key:
            return False
        self.clear()
        logger.info("Checkpoint cleared: story=%s", story_key)
        return True

    def exists(self) -> bool:
        return self.path.is_file()
