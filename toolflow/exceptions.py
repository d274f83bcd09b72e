"""Error types raised across the toolflow engine."""

from __future__ import annotations

from typing import List, Sequence


class ToolflowError(Exception):
    """Base class for toolflow errors."""


class DependencyUnmet(ToolflowError):
    """A step's prerequisite steps did not all complete."""

    def __init__(self, step_id: str, missing: Sequence[str]) -> None:
        self.step_id = step_id
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Step {step_id} has unmet dependencies: {', '.join(self.missing)}"
        )


class ToolInvocationError(ToolflowError):
    """A single tool call failed before producing a result."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class StepOrchestrationError(ToolflowError):
    """Unrecoverable failure at the step boundary; halts the workflow."""

    def __init__(self, step_id: str, message: str) -> None:
        self.step_id = step_id
        super().__init__(message)


class RequiredToolFailed(StepOrchestrationError):
    """Raised under the ``escalate`` policy when required tools failed."""

    def __init__(self, step_id: str, tool_names: Sequence[str]) -> None:
        self.tool_names: List[str] = list(tool_names)
        super().__init__(
            step_id, f"Required tool(s) failed: {', '.join(self.tool_names)}"
        )


class PersistenceError(ToolflowError):
    """Checkpoint or execution store failure."""


class RecoveryError(ToolflowError):
    """An execution cannot be resumed."""

    def __init__(self, execution_id: str, reason: str) -> None:
        self.execution_id = execution_id
        self.reason = reason
        super().__init__(f"Cannot resume execution {execution_id}: {reason}")


class WorkflowNotFound(ToolflowError, KeyError):
    """No workflow is registered under the requested id."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")

    def __str__(self) -> str:
        return self.args[0]


__all__ = [
    "ToolflowError",
    "DependencyUnmet",
    "ToolInvocationError",
    "StepOrchestrationError",
    "RequiredToolFailed",
    "PersistenceError",
    "RecoveryError",
    "WorkflowNotFound",
]
