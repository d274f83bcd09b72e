"""Core data contracts for toolflow workflows and executions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .params import ParamValue, compile_params


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED)


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class CheckpointType(str, Enum):
    STEP_START = "step_start"
    STEP_COMPLETE = "step_complete"
    ERROR_RECOVERY = "error_recovery"
    MANUAL = "manual"


class RequiredToolPolicy(str, Enum):
    """What a failed ``required`` tool means for its step."""

    DEGRADE = "degrade"
    ESCALATE = "escalate"


_ALLOWED_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.RUNNING, StepStatus.SKIPPED},
    StepStatus.RUNNING: {StepStatus.COMPLETED, StepStatus.FAILED},
}


# ---------------------------------------------------------------------------
# Workflow definitions


class WorkflowTool(BaseModel):
    """A single tool invocation inside a step."""

    model_config = ConfigDict(frozen=True)

    name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    required: bool = False
    alias: Optional[str] = None

    @property
    def result_key(self) -> str:
        return self.alias or self.name

    def compiled_params(self) -> Dict[str, ParamValue]:
        return compile_params(self.params)


class WorkflowStep(BaseModel):
    """Defines one step in a workflow."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    parallel: bool = False
    tools: List[WorkflowTool] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    output_format: Optional[str] = None


class Workflow(BaseModel):
    """Immutable workflow definition: an ordered list of steps."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    steps: List[WorkflowStep] = Field(default_factory=list)

    def step(self, step_id: str) -> Optional[WorkflowStep]:
        return next((s for s in self.steps if s.id == step_id), None)

    def step_index(self, step_id: str) -> int:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        raise KeyError(step_id)


# ---------------------------------------------------------------------------
# Execution results


class ToolResult(BaseModel):
    """Outcome reported by a tool gateway."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    duration_ms: int = 0


class ToolExecutionResult(BaseModel):
    """Result of one tool invocation within a step run."""

    tool_name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    cached: bool = False
    duration_ms: int = 0
    required: bool = False


class StepResult(BaseModel):
    """Mutable record of a step's progress; frozen once terminal."""

    step_id: str
    status: StepStatus = StepStatus.PENDING
    tool_results: Dict[str, ToolExecutionResult] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None

    def transition(self, status: StepStatus) -> None:
        """Move to ``status``; only forward moves are allowed."""
        status = StepStatus(status)
        if status not in _ALLOWED_TRANSITIONS.get(self.status, set()):
            raise ValueError(
                f"Invalid status transition for step {self.step_id}: "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status

    def failed_tools(self, required: Optional[bool] = None) -> List[str]:
        return [
            key
            for key, result in self.tool_results.items()
            if not result.success and (required is None or result.required == required)
        ]


class WorkflowExecution(BaseModel):
    """Execution ledger for one workflow run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    current_step: Optional[str] = None
    step_results: List[StepResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    error_message: Optional[str] = None
    workflow_state: Dict[str, Any] = Field(default_factory=dict)
    checkpoint_data: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def result_for(self, step_id: str) -> Optional[StepResult]:
        return next((r for r in self.step_results if r.step_id == step_id), None)

    def last_completed_step(self) -> Optional[StepResult]:
        for result in reversed(self.step_results):
            if result.status == StepStatus.COMPLETED:
                return result
        return None

    @property
    def duration_ms(self) -> Optional[int]:
        if self.ended_at is None:
            return None
        return int((self.ended_at - self.started_at).total_seconds() * 1000)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "WorkflowExecution":
        return cls.model_validate_json(data)


class Checkpoint(BaseModel):
    """Snapshot of accumulated context at a step boundary."""

    execution_id: str
    step_id: str
    checkpoint_type: CheckpointType
    data: Dict[str, Any] = Field(default_factory=dict)
    sequence: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class WorkflowContext(BaseModel):
    """Initial input for a run."""

    user_query: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)
    previous_step_results: Dict[str, Dict[str, ToolExecutionResult]] = Field(
        default_factory=dict
    )
