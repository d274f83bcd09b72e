"""Recovery of failed or paused executions from stored checkpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .contracts import (
    ExecutionStatus,
    StepResult,
    StepStatus,
    ToolExecutionResult,
    Workflow,
    WorkflowContext,
    WorkflowExecution,
)
from .exceptions import RecoveryError
from .persistence import CheckpointStore

logger = logging.getLogger(__name__)

RECOVERABLE_STATUSES = (ExecutionStatus.FAILED, ExecutionStatus.PAUSED)


class RecoveryPlan(BaseModel):
    """Whether an execution can be resumed, and from where."""

    execution_id: str
    can_recover: bool
    reason: Optional[str] = None
    last_successful_step: Optional[str] = None
    execution: Optional[WorkflowExecution] = None
    checkpoint: Optional[Dict[str, Any]] = None


class ResumeState(BaseModel):
    """Seed for a new run that continues after ``resumed_after``."""

    resumed_from: str
    resumed_after: str
    start_index: int
    step_results: List[StepResult] = Field(default_factory=list)
    context: WorkflowContext


class WorkflowRecovery:
    """Inspect stored executions and build resume seeds.

    Performs no retries itself; callers decide whether to start a new run.
    """

    def __init__(self, store: CheckpointStore) -> None:
        self._store = store

    async def recover_execution(self, execution_id: str) -> RecoveryPlan:
        execution = await self._store.load_execution(execution_id)
        if execution is None:
            return RecoveryPlan(
                execution_id=execution_id, can_recover=False, reason="Execution not found"
            )
        if execution.status not in RECOVERABLE_STATUSES:
            return RecoveryPlan(
                execution_id=execution_id,
                can_recover=False,
                reason=f"Execution is {execution.status.value}",
                execution=execution,
            )
        last = execution.last_completed_step()
        if last is None:
            return RecoveryPlan(
                execution_id=execution_id,
                can_recover=False,
                reason="No completed steps to resume from",
                execution=execution,
            )

        checkpoint = await self._store.resume_from_checkpoint(execution_id)
        return RecoveryPlan(
            execution_id=execution_id,
            can_recover=True,
            last_successful_step=last.step_id,
            execution=execution,
            checkpoint=checkpoint,
        )

    def build_resume_state(self, plan: RecoveryPlan, workflow: Workflow) -> ResumeState:
        """Seed a new run with every step result up to the last completed step."""
        if not plan.can_recover or plan.execution is None or plan.last_successful_step is None:
            raise RecoveryError(plan.execution_id, plan.reason or "Not recoverable")
        execution = plan.execution
        try:
            resume_index = workflow.step_index(plan.last_successful_step) + 1
        except KeyError:
            raise RecoveryError(
                plan.execution_id,
                f"Step {plan.last_successful_step} is not part of workflow {workflow.id}",
            )

        seeded: List[StepResult] = []
        for step in workflow.steps[:resume_index]:
            result = execution.result_for(step.id)
            if result is not None and result.status in (StepStatus.COMPLETED, StepStatus.SKIPPED):
                seeded.append(result.model_copy(deep=True))

        previous = self._checkpoint_results(plan.checkpoint)
        previous_step_results: Dict[str, Dict[str, ToolExecutionResult]] = {}
        for result in seeded:
            if result.status != StepStatus.COMPLETED:
                continue
            previous_step_results[result.step_id] = previous.get(
                result.step_id, dict(result.tool_results)
            )

        state = execution.workflow_state
        return ResumeState(
            resumed_from=execution.id,
            resumed_after=plan.last_successful_step,
            start_index=resume_index,
            step_results=seeded,
            context=WorkflowContext(
                user_query=state.get("user_query", ""),
                parameters=state.get("parameters", {}),
                previous_step_results=previous_step_results,
            ),
        )

    @staticmethod
    def _checkpoint_results(
        checkpoint: Optional[Dict[str, Any]]
    ) -> Dict[str, Dict[str, ToolExecutionResult]]:
        if not checkpoint:
            return {}
        raw = checkpoint.get("previous_step_results") or {}
        parsed: Dict[str, Dict[str, ToolExecutionResult]] = {}
        for step_id, results in raw.items():
            try:
                parsed[step_id] = {
                    key: ToolExecutionResult.model_validate(value)
                    for key, value in results.items()
                }
            except (AttributeError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable checkpoint results for step {step_id}: {e}")
        return parsed
