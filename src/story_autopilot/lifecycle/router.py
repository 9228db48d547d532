"""Status-based routing of a story to its remaining workflow steps."""

from __future__ import annotations

from dataclasses import dataclass

from story_autopilot.lifecycle.errors import StoryComplete, UnknownStatus
from story_autopilot.status.models import StoryStatus

CREATE_STORY = "create-story"
DEV_STORY = "dev-story"
CODE_REVIEW = "code-review"
GIT_COMMIT = "git-commit"

LIFECYCLE_WORKFLOWS: tuple[str, ...] = (CREATE_STORY, DEV_STORY, CODE_REVIEW, GIT_COMMIT)


@dataclass(frozen=True, slots=True)
class LifecycleStep:
    """One workflow to run and the status the story moves to once it succeeds."""

    workflow: str
    next_status: StoryStatus


# git-commit keeps the story at done.
_FROM_REVIEW: tuple[LifecycleStep, ...] = (
    LifecycleStep(CODE_REVIEW, StoryStatus.DONE),
    LifecycleStep(GIT_COMMIT, StoryStatus.DONE),
)
_FROM_DEV: tuple[LifecycleStep, ...] = (
    LifecycleStep(DEV_STORY, StoryStatus.REVIEW),
    *_FROM_REVIEW,
)
_FROM_BACKLOG: tuple[LifecycleStep, ...] = (
    LifecycleStep(CREATE_STORY, StoryStatus.READY_FOR_DEV),
    *_FROM_DEV,
)


def get_lifecycle(status: StoryStatus | str) -> tuple[LifecycleStep, ...]:
    """Return the steps that take a story from ``status`` to done.

    Raises :class:`StoryComplete` for done stories and :class:`UnknownStatus`
    for values outside :class:`StoryStatus`.
    """

    if not StoryStatus.is_valid(status):
        raise UnknownStatus(status)

    match StoryStatus(status):
        case StoryStatus.BACKLOG:
            return _FROM_BACKLOG
        case StoryStatus.READY_FOR_DEV | StoryStatus.IN_PROGRESS:
            return _FROM_DEV
        case StoryStatus.REVIEW:
            return _FROM_REVIEW
        case StoryStatus.DONE:
            raise StoryComplete
    raise UnknownStatus(status)  # pragma: no cover
