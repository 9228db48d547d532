"""Read story statuses from the sprint status YAML file."""

from __future__ import annotations

import re
from pathlib import Path

import yaml

from story_autopilot.status.models import SprintStatus, StoryStatus

DEFAULT_STATUS_PATH = Path("_bmad-output") / "implementation-artifacts" / "sprint-status.yaml"
DEVELOPMENT_STATUS_KEY = "development_status"


class StatusFileError(RuntimeError):
    """Sprint status file is missing or cannot be parsed."""


class StoryNotFound(LookupError):
    """Story key is not present in the sprint status file."""

    def __init__(self, story_key: str) -> None:
        super().__init__(f"story not found: {story_key}")
        self.story_key = story_key


class NoEpicStories(LookupError):
    """No story keys belong to the requested epic."""

    def __init__(self, epic_id: str) -> None:
        super().__init__(f"no stories found for epic: {epic_id}")
        self.epic_id = epic_id


class SprintStatusReader:
    """Looks up story statuses in ``sprint-status.yaml`` under a project directory."""

    def __init__(self, base_path: Path, status_path: Path = DEFAULT_STATUS_PATH) -> None:
        self.base_path = base_path
        self.status_path = status_path

    @property
    def full_path(self) -> Path:
        return self.base_path / self.status_path

    def read(self) -> SprintStatus:
        """Parse the whole status file."""

        try:
            raw_text = self.full_path.read_text("utf-8")
        except OSError as error:
            raise StatusFileError(f"failed to read sprint status: {error}") from error
        try:
            document = yaml.safe_load(raw_text)
        except yaml.YAMLError as error:
            raise StatusFileError(f"failed to read sprint status: {error}") from error
        return parse_status_document(document, self.full_path)

    def get_story_status(self, story_key: str) -> StoryStatus | str:
        """Return the status of one story.

        Values outside :class:`StoryStatus` are returned as raw strings so the
        lifecycle router can reject them as corrupt state.
        """

        sprint_status = self.read()
        try:
            raw_value = sprint_status.development_status[story_key]
        except KeyError as error:
            raise StoryNotFound(story_key) from error
        return StoryStatus.coerce(raw_value)

    def get_epic_stories(self, epic_id: str) -> list[str]:
        """Return keys shaped ``{epic_id}-{N}-*`` sorted by the numeric story number."""

        sprint_status = self.read()
        pattern = re.compile(rf"^{re.escape(epic_id)}-(\d+)-")
        numbered: list[tuple[int, str]] = []
        for story_key in sprint_status.story_keys():
            match = pattern.match(story_key)
            if match is None:
                continue
            numbered.append((int(match.group(1)), story_key))
        if not numbered:
            raise NoEpicStories(epic_id)
        numbered.sort(key=lambda item: item[0])
        return [story_key for _, story_key in numbered]


def parse_status_document(document: object, path: Path) -> SprintStatus:
    if not isinstance(document, dict):
        raise StatusFileError(f"failed to read sprint status: expected mapping in {path}")
    section = document.get(DEVELOPMENT_STATUS_KEY)
    if section is None:
        return SprintStatus()
    if not isinstance(section, dict):
        raise StatusFileError(
            f"failed to read sprint status: {DEVELOPMENT_STATUS_KEY} is not a mapping",
        )
    return SprintStatus(
        development_status={str(key): str(value) for key, value in section.items()},
    )
