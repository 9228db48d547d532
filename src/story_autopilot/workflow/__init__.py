"""Named workflow execution through the agent CLI."""

from story_autopilot.workflow.runner import AgentWorkflowRunner

__all__ = ["AgentWorkflowRunner"]
