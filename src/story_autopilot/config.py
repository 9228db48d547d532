"""Runtime configuration for the lifecycle CLI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from story_autopilot.lifecycle.checkpoint import DEFAULT_CHECKPOINT_PATH
from story_autopilot.lifecycle.router import CODE_REVIEW, CREATE_STORY, DEV_STORY, GIT_COMMIT
from story_autopilot.status.reader import DEFAULT_STATUS_PATH

DEFAULT_COMMAND_TEMPLATE = (
    "claude -p {prompt} --output-format stream-json --verbose --permission-mode acceptEdits"
)
DEFAULT_CONFIG_FILE = Path(".story-autopilot.yaml")

DEFAULT_WORKFLOW_PROMPTS: dict[str, str] = {
    CREATE_STORY: (
        "/bmad:bmm:workflows:create-story - Create story: {story_key}. "
        "Do not ask questions; make reasonable assumptions and proceed."
    ),
    DEV_STORY: (
        "/bmad:bmm:workflows:dev-story - Work on story: {story_key}. "
        "Complete all tasks. Run tests after each implementation. Do not ask clarifying "
        "questions; use best judgment based on existing patterns."
    ),
    CODE_REVIEW: (
        "/bmad:bmm:workflows:code-review - Review story: {story_key}. "
        "Auto-fix all issues found without prompting. Update the story status when done."
    ),
    GIT_COMMIT: (
        "Commit all changes for story {story_key} with a descriptive message "
        "and push to the current branch."
    ),
}

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AgentSettings:
    """Agent CLI invocation settings."""

    command_template: str = DEFAULT_COMMAND_TEMPLATE
    timeout_seconds: int = 3_600
    graceful_shutdown_seconds: int = 10


@dataclass(slots=True)
class OutputSettings:
    """Terminal output truncation settings."""

    truncate_lines: int = 20
    truncate_length: int = 60


@dataclass(slots=True)
class WorkflowSettings:
    """Prompt templates keyed by workflow name; ``{story_key}`` is substituted."""

    prompts: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_WORKFLOW_PROMPTS))

    def get_prompt(self, workflow_name: str, story_key: str) -> str:
        try:
            template = self.prompts[workflow_name]
        except KeyError as error:
            raise KeyError(f"unknown workflow: {workflow_name}") from error
        return template.replace("{story_key}", story_key)


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    project_dir: Path = Path()
    status_path: Path = DEFAULT_STATUS_PATH
    checkpoint_path: Path = DEFAULT_CHECKPOINT_PATH
    agent: AgentSettings = field(default_factory=AgentSettings)
    output: OutputSettings = field(default_factory=OutputSettings)
    workflows: WorkflowSettings = field(default_factory=WorkflowSettings)

    @property
    def checkpoint_file(self) -> Path:
        return self.project_dir / self.checkpoint_path

    @classmethod
    def from_env(cls, project_dir: Path | None = None) -> Settings:
        """Load settings from environment and the optional YAML config file."""

        resolved_project_dir = project_dir or Path(
            os.getenv("STORY_AUTOPILOT_PROJECT_DIR", "."),
        )
        config_path = Path(
            os.getenv(
                "STORY_AUTOPILOT_CONFIG",
                str(resolved_project_dir / DEFAULT_CONFIG_FILE),
            ),
        )
        file_config = _load_config_file(config_path)

        prompts = dict(DEFAULT_WORKFLOW_PROMPTS)
        prompts.update(_collect_workflow_prompts(file_config, config_path))

        return cls(
            project_dir=resolved_project_dir,
            status_path=Path(
                os.getenv("STORY_AUTOPILOT_STATUS_PATH", str(DEFAULT_STATUS_PATH)),
            ),
            checkpoint_path=Path(
                os.getenv("STORY_AUTOPILOT_CHECKPOINT_PATH", str(DEFAULT_CHECKPOINT_PATH)),
            ),
            agent=AgentSettings(
                command_template=os.getenv(
                    "STORY_AUTOPILOT_AGENT_COMMAND_TEMPLATE",
                    str(file_config.get("command_template", DEFAULT_COMMAND_TEMPLATE)),
                ),
                timeout_seconds=_env_positive_int(
                    "STORY_AUTOPILOT_AGENT_TIMEOUT_SECONDS",
                    default=3_600,
                ),
                graceful_shutdown_seconds=_env_positive_int(
                    "STORY_AUTOPILOT_GRACEFUL_SHUTDOWN_SECONDS",
                    default=10,
                ),
            ),
            output=OutputSettings(
                truncate_lines=_env_positive_int("STORY_AUTOPILOT_TRUNCATE_LINES", default=20),
                truncate_length=_env_positive_int("STORY_AUTOPILOT_TRUNCATE_LENGTH", default=60),
            ),
            workflows=WorkflowSettings(prompts=prompts),
        )


def _load_config_file(path: Path) -> dict[str, object]:
    if not path.is_file():
        return {}
    try:
        raw = yaml.safe_load(path.read_text("utf-8")) or {}
    except yaml.YAMLError as error:
        raise ValueError(f"Invalid YAML in config file {path}: {error}") from error
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level.")
    logger.debug("Loaded config file %s", path)
    return raw


def _collect_workflow_prompts(file_config: dict[str, object], path: Path) -> dict[str, str]:
    raw = file_config.get("workflows")
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"'workflows' in {path} must be a mapping of name -> prompt template.")

    prompts: dict[str, str] = {}
    for name, entry in raw.items():
        template = entry.get("prompt") if isinstance(entry, dict) else entry
        if not isinstance(template, str) or not template.strip():
            raise ValueError(f"Workflow {name!r} in {path} needs a non-empty prompt template.")
        prompts[str(name)] = template
    return prompts


def _env_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error
    if parsed <= 0:
        raise ValueError(f"{name} must be > 0.")
    return parsed


def env_log_level(name: str, default: str) -> str:
    value = os.getenv(name, default).strip().upper()
    if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ValueError(f"Invalid log level for {name}: {value!r}")
    return value
