"""Persist story status transitions into the sprint status YAML file."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

import yaml

from story_autopilot.status.models import StoryStatus
from story_autopilot.status.reader import (
    DEFAULT_STATUS_PATH,
    DEVELOPMENT_STATUS_KEY,
    StatusFileError,
    StoryNotFound,
    parse_status_document,
)

logger = logging.getLogger(__name__)


class SprintStatusWriter:
    """Updates one story's status in place, keeping comments and ordering intact."""

    def __init__(self, base_path: Path, status_path: Path = DEFAULT_STATUS_PATH) -> None:
        self.base_path = base_path
        self.status_path = status_path

    @property
    def full_path(self) -> Path:
        return self.base_path / self.status_path

    def update_status(self, story_key: str, new_status: StoryStatus | str) -> None:
        if not StoryStatus.is_valid(new_status):
            raise ValueError(f"invalid status: {_status_text(new_status)}")
        status_value = StoryStatus(new_status).value

        full_path = self.full_path
        try:
            original = full_path.read_text("utf-8")
        except OSError as error:
            raise StatusFileError(f"failed to read sprint status: {error}") from error
        try:
            document = yaml.safe_load(original)
        except yaml.YAMLError as error:
            raise StatusFileError(f"failed to parse sprint status: {error}") from error

        sprint_status = parse_status_document(document, full_path)
        if story_key not in sprint_status.development_status:
            raise StoryNotFound(story_key)

        updated = _replace_story_line(original, story_key, status_value)
        if updated is None:
            logger.debug("No block-style line for %s, re-serializing %s", story_key, full_path)
            section = document[DEVELOPMENT_STATUS_KEY]
            section[_original_key(section, story_key)] = status_value
            updated = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)

        _atomic_write(full_path, updated)
        logger.info("Status updated: %s -> %s", story_key, status_value)


def _status_text(value: object) -> str:
    if isinstance(value, StoryStatus):
        return value.value
    return str(value)


def _original_key(section: dict[object, object], story_key: str) -> object:
    """Return the key as YAML loaded it; the reader compares keys as strings."""

    return next(key for key in section if str(key) == story_key)


def _replace_story_line(text: str, story_key: str, status_value: str) -> str | None:
    """Rewrite the value of ``story_key`` inside the development_status block.

    Returns ``None`` when the key is not laid out as a block-style mapping line.
    """

    line_pattern = re.compile(
        rf"^(?P<prefix>[ \t]+(?P<quote>['\"]?){re.escape(story_key)}(?P=quote)[ \t]*:[ \t]*)"
        r"(?P<value>'[^']*'|\"[^\"]*\"|[^\s#]+)(?P<rest>.*)$",
    )
    section_pattern = re.compile(rf"^{DEVELOPMENT_STATUS_KEY}[ \t]*:[ \t]*(#.*)?$")

    lines = text.splitlines(keepends=True)
    in_section = False
    for index, line in enumerate(lines):
        body = line.rstrip("\r\n")
        ending = line[len(body) :]
        if not in_section:
            in_section = section_pattern.match(body) is not None
            continue
        if body and not body[0].isspace() and not body.startswith("#"):
            return None
        match = line_pattern.match(body)
        if match is None:
            continue
        lines[index] = f"{match.group('prefix')}{status_value}{match.group('rest')}{ending}"
        return "".join(lines)
    return None


def _atomic_write(path: Path, content: str) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_text(content, "utf-8")
        os.replace(tmp_path, path)
    except OSError as error:
        tmp_path.unlink(missing_ok=True)
        raise StatusFileError(f"failed to write sprint status: {error}") from error
