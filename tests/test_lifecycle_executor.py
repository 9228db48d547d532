from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import allure
import pytest

from story_autopilot.lifecycle import (
    CheckpointNotFound,
    CheckpointStore,
    LifecycleCancelled,
    LifecycleExecutor,
    RunCheckpoint,
    StatusPersistError,
    StepFailed,
    StoryComplete,
    UnknownStatus,
)
from story_autopilot.status import StoryNotFound
from story_autopilot.status.models import StoryStatus

pytestmark = [
    allure.epic("Story Lifecycle"),
    allure.feature("Fail-fast Execution"),
]


class FakeRunner:
    def __init__(self, journal: list[str], fail_on: str | None = None, exit_code: int = 1) -> None:
        self.journal = journal
        self.fail_on = fail_on
        self.exit_code = exit_code
        self.calls: list[tuple[str, str]] = []

    def run_single(
        self,
        workflow_name: str,
        story_key: str,
        *,
        shutdown_requested: Callable[[], bool] | None = None,
    ) -> int:
        self.calls.append((workflow_name, story_key))
        self.journal.append(f"run:{workflow_name}")
        if workflow_name == self.fail_on:
            return self.exit_code
        return 0


class FakeStatusStore:
    """Reader and writer over an in-memory mapping."""

    def __init__(self, statuses: dict[str, str], fail_writes: bool = False) -> None:
        self.statuses = dict(statuses)
        self.fail_writes = fail_writes
        self.writes: list[tuple[str, StoryStatus]] = []

    def get_story_status(self, story_key: str) -> StoryStatus | str:
        try:
            return StoryStatus.coerce(self.statuses[story_key])
        except KeyError as error:
            raise StoryNotFound(story_key) from error

    def update_status(self, story_key: str, new_status: StoryStatus) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes.append((story_key, new_status))
        self.statuses[story_key] = new_status.value


def _executor(
    tmp_path: Path,
    statuses: dict[str, str],
    *,
    fail_on: str | None = None,
    fail_writes: bool = False,
) -> tuple[LifecycleExecutor, FakeRunner, FakeStatusStore, CheckpointStore, list[str]]:
    journal: list[str] = []
    runner = FakeRunner(journal, fail_on=fail_on)
    store = FakeStatusStore(statuses, fail_writes=fail_writes)
    checkpoints = CheckpointStore(tmp_path / "checkpoint.json")
    executor = LifecycleExecutor(runner, store, store, checkpoints)
    return executor, runner, store, checkpoints, journal


def test_execute_backlog_runs_full_lifecycle(tmp_path: Path) -> None:
    executor, runner, store, checkpoints, _ = _executor(tmp_path, {"6-1-schema": "backlog"})

    executor.execute("6-1-schema")

    assert [name for name, _ in runner.calls] == [
        "create-story",
        "dev-story",
        "code-review",
        "git-commit",
    ]
    assert [status.value for _, status in store.writes] == [
        "ready-for-dev",
        "review",
        "done",
        "done",
    ]
    assert all(key == "6-1-schema" for key, _ in store.writes)
    assert not checkpoints.exists()


def test_execute_review_runs_review_and_commit(tmp_path: Path) -> None:
    executor, runner, store, _, _ = _executor(tmp_path, {"story": "review"})

    executor.execute("story")

    assert [name for name, _ in runner.calls] == ["code-review", "git-commit"]
    assert [status for _, status in store.writes] == [StoryStatus.DONE, StoryStatus.DONE]


def test_execute_done_story_raises_story_complete_without_side_effects(tmp_path: Path) -> None:
    executor, runner, store, checkpoints, _ = _executor(tmp_path, {"story": "done"})
    notifications: list[tuple[int, int, str]] = []
    executor.set_progress_callback(lambda *args: notifications.append(args))

    with pytest.raises(StoryComplete):
        executor.execute("story")

    assert runner.calls == []
    assert store.writes == []
    assert notifications == []
    assert not checkpoints.exists()


def test_execute_unknown_status_is_rejected(tmp_path: Path) -> None:
    executor, runner, store, _, _ = _executor(tmp_path, {"story": "blocked"})

    with pytest.raises(UnknownStatus):
        executor.execute("story")

    assert runner.calls == []
    assert store.writes == []


def test_execute_status_lookup_error_propagates_unchanged(tmp_path: Path) -> None:
    executor, runner, _, _, _ = _executor(tmp_path, {})

    with pytest.raises(StoryNotFound, match="story not found: missing"):
        executor.execute("missing")

    assert runner.calls == []


def test_execute_stops_at_first_failure_and_saves_checkpoint(tmp_path: Path) -> None:
    executor, runner, store, checkpoints, _ = _executor(
        tmp_path,
        {"story": "backlog"},
        fail_on="dev-story",
    )

    with pytest.raises(StepFailed) as error:
        executor.execute("story")

    assert error.value.workflow == "dev-story"
    assert error.value.exit_code == 1
    assert "dev-story" in str(error.value)
    assert [name for name, _ in runner.calls] == ["create-story", "dev-story"]
    assert store.writes == [("story", StoryStatus.READY_FOR_DEV)]

    checkpoint = checkpoints.load()
    assert checkpoint.story_key == "story"
    assert checkpoint.step_index == 1
    assert checkpoint.total_steps == 4
    assert checkpoint.start_status is StoryStatus.BACKLOG
    assert checkpoint.failed_workflow == "dev-story"


@pytest.mark.parametrize("failing_step", [1, 2, 3, 4])
def test_failure_at_step_k_runs_k_actions_and_k_minus_one_writes(
    tmp_path: Path,
    failing_step: int,
) -> None:
    workflows = ["create-story", "dev-story", "code-review", "git-commit"]
    executor, runner, store, checkpoints, _ = _executor(
        tmp_path,
        {"story": "backlog"},
        fail_on=workflows[failing_step - 1],
    )

    with pytest.raises(StepFailed):
        executor.execute("story")

    assert len(runner.calls) == failing_step
    assert len(store.writes) == failing_step - 1
    assert checkpoints.load().step_index == failing_step - 1


def test_progress_callback_precedes_each_workflow(tmp_path: Path) -> None:
    executor, _, _, _, journal = _executor(tmp_path, {"story": "backlog"})
    executor.set_progress_callback(
        lambda index, total, workflow: journal.append(f"progress:{index}/{total}:{workflow}"),
    )

    executor.execute("story")

    assert journal == [
        "progress:1/4:create-story",
        "run:create-story",
        "progress:2/4:dev-story",
        "run:dev-story",
        "progress:3/4:code-review",
        "run:code-review",
        "progress:4/4:git-commit",
        "run:git-commit",
    ]


def test_progress_callback_called_for_failing_step(tmp_path: Path) -> None:
    executor, _, _, _, _ = _executor(tmp_path, {"story": "review"}, fail_on="code-review")
    notifications: list[tuple[int, int, str]] = []
    executor.set_progress_callback(lambda *args: notifications.append(args))

    with pytest.raises(StepFailed):
        executor.execute("story")

    assert notifications == [(1, 2, "code-review")]


def test_execute_without_progress_callback_or_checkpoints(tmp_path: Path) -> None:
    journal: list[str] = []
    runner = FakeRunner(journal, fail_on="git-commit", exit_code=7)
    store = FakeStatusStore({"story": "review"})
    executor = LifecycleExecutor(runner, store, store)

    with pytest.raises(StepFailed, match="exit code 7"):
        executor.execute("story")

    assert store.writes == [("story", StoryStatus.DONE)]


def test_status_write_failure_halts_run(tmp_path: Path) -> None:
    executor, runner, _, checkpoints, _ = _executor(
        tmp_path,
        {"story": "ready-for-dev"},
        fail_writes=True,
    )

    with pytest.raises(StatusPersistError) as error:
        executor.execute("story")

    assert isinstance(error.value.__cause__, OSError)
    assert error.value.status == "review"
    assert [name for name, _ in runner.calls] == ["dev-story"]
    assert not checkpoints.exists()


def test_shutdown_between_steps_stops_before_next_workflow(tmp_path: Path) -> None:
    executor, runner, store, checkpoints, _ = _executor(tmp_path, {"story": "backlog"})
    requested = False

    def _progress(index: int, total: int, workflow: str) -> None:
        nonlocal requested
        requested = True

    executor.set_progress_callback(_progress)

    with pytest.raises(LifecycleCancelled) as error:
        executor.execute("story", shutdown_requested=lambda: requested)

    assert error.value.completed_steps == 1
    assert [name for name, _ in runner.calls] == ["create-story"]
    assert store.writes == [("story", StoryStatus.READY_FOR_DEV)]
    assert not checkpoints.exists()


def test_successful_run_clears_own_checkpoint_only(tmp_path: Path) -> None:
    executor, _, _, checkpoints, _ = _executor(tmp_path, {"a": "review", "b": "review"})
    checkpoints.save(
        RunCheckpoint(story_key="a", step_index=0, total_steps=2, start_status=StoryStatus.REVIEW),
    )

    executor.execute("b")
    assert checkpoints.load().story_key == "a"

    executor.execute("a")
    with pytest.raises(CheckpointNotFound):
        checkpoints.load()


def test_get_steps_matches_execute_without_side_effects(tmp_path: Path) -> None:
    executor, runner, store, checkpoints, _ = _executor(tmp_path, {"story": "in-progress"})
    notifications: list[tuple[int, int, str]] = []
    executor.set_progress_callback(lambda *args: notifications.append(args))

    steps = executor.get_steps("story")

    assert [step.workflow for step in steps] == ["dev-story", "code-review", "git-commit"]
    assert runner.calls == []
    assert store.writes == []
    assert notifications == []
    assert not checkpoints.exists()

    executor.execute("story")
    assert [name for name, _ in runner.calls] == [step.workflow for step in steps]


def test_get_steps_for_done_story_raises_story_complete(tmp_path: Path) -> None:
    executor, _, _, _, _ = _executor(tmp_path, {"story": "done"})

    with pytest.raises(StoryComplete):
        executor.get_steps("story")
