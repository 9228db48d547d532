"""Story lifecycle states and the parsed sprint status document."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class StoryStatus(str, Enum):
    """Closed set of states a story can occupy, ordered toward completion."""

    BACKLOG = "backlog"
    READY_FOR_DEV = "ready-for-dev"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"

    @classmethod
    def is_valid(cls, value: object) -> bool:
        return isinstance(value, str) and value in _STATUS_VALUES

    @classmethod
    def parse(cls, value: str) -> StoryStatus:
        """Return the member for ``value`` or raise ``ValueError``."""

        if not cls.is_valid(value):
            raise ValueError(f"invalid status: {value}")
        return cls(value)

    @classmethod
    def coerce(cls, value: str) -> StoryStatus | str:
        """Return the member for ``value``, passing unknown values through untouched.

        Unknown values are left for the lifecycle router to reject, so a corrupt
        status file surfaces as an unknown-status error at derivation time.
        """

        if cls.is_valid(value):
            return cls(value)
        return value


_STATUS_VALUES = frozenset(member.value for member in StoryStatus)


@dataclass(slots=True)
class SprintStatus:
    """Parsed ``development_status`` section of a sprint status file."""

    development_status: dict[str, str] = field(default_factory=dict)

    def story_keys(self) -> list[str]:
        return list(self.development_status)
