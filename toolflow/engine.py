"""Workflow execution engine."""

from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any, Dict, Optional

from .analytics import AnalyticsSink, NullAnalytics
from .cache import ResultCache
from .config import ToolflowConfig
from .contracts import (
    CheckpointType,
    ExecutionStatus,
    RequiredToolPolicy,
    StepResult,
    StepStatus,
    ToolExecutionResult,
    Workflow,
    WorkflowContext,
    WorkflowExecution,
    WorkflowStep,
    utcnow,
)
from .exceptions import WorkflowNotFound
from .executor import StepExecutor
from .extraction import extract_parameters
from .gate import DependencyGate
from .gateway import ToolGateway
from .persistence import CheckpointStore, InMemoryCheckpointStore
from .progress import ProgressCallback, ProgressReporter
from .recovery import ResumeState, WorkflowRecovery
from .registry import WorkflowLookup
from .resolver import ParameterResolver

logger = logging.getLogger(__name__)


class _Run:
    """State owned by a single execution."""

    def __init__(
        self,
        workflow: Workflow,
        ledger: WorkflowExecution,
        context: WorkflowContext,
        cache: ResultCache,
        progress: ProgressReporter,
    ) -> None:
        self.workflow = workflow
        self.ledger = ledger
        self.context = context
        self.cache = cache
        self.progress = progress


class WorkflowEngine:
    """Run workflows step by step in their declared order.

    The engine holds collaborators only; every call to :meth:`execute`
    gets its own ledger, context and result cache, so one engine can serve
    concurrent executions.
    """

    def __init__(
        self,
        lookup: WorkflowLookup,
        gateway: ToolGateway,
        store: Optional[CheckpointStore] = None,
        analytics: Optional[AnalyticsSink] = None,
        config: Optional[ToolflowConfig] = None,
        required_tool_policy: Optional[RequiredToolPolicy] = None,
        resolver: Optional[ParameterResolver] = None,
    ) -> None:
        self.config = config or ToolflowConfig()
        self._lookup = lookup
        self._store = store if store is not None else InMemoryCheckpointStore()
        self._analytics = analytics or NullAnalytics()
        self._gate = DependencyGate()
        policy = RequiredToolPolicy(
            required_tool_policy or self.config.engine.required_tool_policy
        )
        self._executor = StepExecutor(
            gateway,
            resolver=resolver,
            analytics=self._analytics,
            required_tool_policy=policy,
        )
        self._recovery = WorkflowRecovery(self._store)

    @property
    def store(self) -> CheckpointStore:
        return self._store

    @property
    def required_tool_policy(self) -> RequiredToolPolicy:
        return self._executor.required_tool_policy

    # ------------------------------------------------------------------
    # Entry points
    async def execute_workflow(
        self,
        workflow_id: str,
        user_query: str = "",
        conversation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        cache: Optional[ResultCache] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> WorkflowExecution:
        """Look up ``workflow_id`` and run it.

        When ``parameters`` is omitted they are extracted from ``user_query``.
        """
        workflow = self._lookup.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(workflow_id)
        if parameters is None:
            parameters = extract_parameters(
                user_query, default_location=self.config.engine.default_location
            )
        context = WorkflowContext(user_query=user_query, parameters=parameters)
        return await self.execute(
            workflow,
            context,
            user_id=user_id,
            conversation_id=conversation_id,
            cache=cache,
            on_progress=on_progress,
        )

    async def resume(
        self,
        execution_id: str,
        cache: Optional[ResultCache] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> WorkflowExecution:
        """Start a new run continuing a failed or paused execution.

        Raises:
            RecoveryError: If the execution cannot be resumed.
        """
        plan = await self._recovery.recover_execution(execution_id)
        workflow = None
        if plan.execution is not None:
            workflow = self._lookup.get(plan.execution.workflow_id)
            if workflow is None and plan.can_recover:
                raise WorkflowNotFound(plan.execution.workflow_id)
        state = self._recovery.build_resume_state(plan, workflow)
        logger.info(
            f"[Workflow] Resuming execution {execution_id} after step {state.resumed_after}"
        )
        return await self.execute(
            workflow,
            state.context,
            user_id=plan.execution.user_id,
            conversation_id=plan.execution.conversation_id,
            cache=cache,
            on_progress=on_progress,
            resume=state,
        )

    async def execute(
        self,
        workflow: Workflow,
        context: Optional[WorkflowContext] = None,
        *,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        cache: Optional[ResultCache] = None,
        execution_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        resume: Optional[ResumeState] = None,
    ) -> WorkflowExecution:
        """Execute the entire workflow and return its ledger."""
        context = (context or WorkflowContext()).model_copy(deep=True)
        ledger = WorkflowExecution(
            id=execution_id or str(uuid.uuid4()),
            workflow_id=workflow.id,
            user_id=user_id,
            conversation_id=conversation_id,
            workflow_state={
                "user_query": context.user_query,
                "parameters": context.parameters,
            },
        )
        start_index = 0
        if resume is not None:
            start_index = resume.start_index
            ledger.step_results = [r.model_copy(deep=True) for r in resume.step_results]
            ledger.metadata.update(
                resumed_from=resume.resumed_from, resumed_after=resume.resumed_after
            )

        run = _Run(
            workflow,
            ledger,
            context,
            cache if cache is not None else ResultCache(),
            ProgressReporter(on_progress, execution_id=ledger.id),
        )
        total = len(workflow.steps)
        logger.info(f"[Workflow] Starting workflow: {workflow.name} ({ledger.id})")

        try:
            for index, step in enumerate(workflow.steps[start_index:], start=start_index):
                if not self._gate.ready(step, ledger):
                    self._skip_step(run, step)
                    await run.progress.emit("step_skipped", index + 1, total, step_id=step.id)
                    continue

                if not await self._execute_step(run, step, index, total):
                    logger.error(f"[Workflow] Step {step.id} failed, stopping workflow")
                    break

            if ledger.status == ExecutionStatus.RUNNING:
                ledger.status = ExecutionStatus.COMPLETED
        except Exception as e:
            logger.error(f"[Workflow] Execution error: {e}")
            ledger.status = ExecutionStatus.FAILED
            ledger.ended_at = utcnow()
            ledger.error_message = str(e) or e.__class__.__name__
            await self._save_execution(run)
            raise

        ledger.ended_at = utcnow()
        self._record_workflow(run)
        await run.progress.emit(
            "workflow_complete",
            total,
            total,
            data={"status": ledger.status.value},
            error=ledger.error_message,
        )
        await self._save_execution(run)
        logger.info(
            f"[Workflow] Finished workflow: {workflow.name} with status "
            f"{ledger.status.value} in {ledger.duration_ms}ms"
        )
        return ledger

    # ------------------------------------------------------------------
    # Step handling
    def _skip_step(self, run: _Run, step: WorkflowStep) -> None:
        missing = self._gate.unmet(step, run.ledger)
        logger.info(
            f"[Workflow] Skipping step {step.id} - dependencies not met: {', '.join(missing)}"
        )
        result = StepResult(step_id=step.id)
        result.transition(StepStatus.SKIPPED)
        run.ledger.step_results.append(result)

    async def _execute_step(
        self, run: _Run, step: WorkflowStep, index: int, total: int
    ) -> bool:
        """Run one step; return ``False`` when the workflow must halt."""
        ledger = run.ledger
        logger.info(f"[Workflow] Executing step: {step.name}")
        ledger.current_step = step.id
        result = StepResult(step_id=step.id)
        ledger.step_results.append(result)

        await self._save_checkpoint(run, step.id, CheckpointType.STEP_START)
        result.transition(StepStatus.RUNNING)
        result.started_at = utcnow()
        await run.progress.emit("step_start", index, total, step_id=step.id)

        try:
            await self._executor.run(step, run.context, run.cache, result, run.progress)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"[Workflow] Step {step.name} failed: {message}")
            result.error = message
            result.transition(StepStatus.FAILED)
            ledger.status = ExecutionStatus.FAILED
            ledger.error_message = f"Step {step.id} failed: {message}"
            await self._save_checkpoint(
                run,
                step.id,
                CheckpointType.ERROR_RECOVERY,
                error=message,
                error_stack=traceback.format_exc(),
            )
            await self._save_execution(run)
            await run.progress.emit("step_failed", index + 1, total, step_id=step.id, error=message)
            return False

        result.transition(StepStatus.COMPLETED)
        run.context.previous_step_results[step.id] = dict(result.tool_results)
        await self._save_checkpoint(run, step.id, CheckpointType.STEP_COMPLETE)
        await run.progress.emit(
            "step_complete",
            index + 1,
            total,
            step_id=step.id,
            data={key: r.data for key, r in result.tool_results.items() if r.success},
        )
        logger.info(f"[Workflow] Step {step.name} completed in {result.duration_ms}ms")
        return True

    # ------------------------------------------------------------------
    # Persistence and analytics; failures here never affect the run
    def _checkpoint_data(self, run: _Run, **extra: Any) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "step_results": [r.model_dump(mode="json") for r in run.ledger.step_results],
            "previous_step_results": {
                step_id: {key: r.model_dump(mode="json") for key, r in results.items()}
                for step_id, results in run.context.previous_step_results.items()
            },
            "workflow_state": run.ledger.workflow_state,
        }
        data.update(extra)
        return data

    async def _save_checkpoint(
        self, run: _Run, step_id: str, checkpoint_type: CheckpointType, **extra: Any
    ) -> None:
        try:
            # tool data that is not JSON serialisable fails here; skip the checkpoint
            data = self._checkpoint_data(run, **extra)
            run.ledger.checkpoint_data = data
            await self._store.save_checkpoint(run.ledger.id, step_id, checkpoint_type, data)
        except Exception as e:
            logger.warning(
                f"[Workflow] Failed to save {checkpoint_type.value} checkpoint for step {step_id}: {e}"
            )

    async def _save_execution(self, run: _Run) -> None:
        try:
            await self._store.save_execution(run.ledger)
        except Exception as e:
            logger.warning(f"[Workflow] Failed to save execution state {run.ledger.id}: {e}")

    def _record_workflow(self, run: _Run) -> None:
        tool_results: Dict[str, ToolExecutionResult] = {}
        for step_result in run.ledger.step_results:
            for key, result in step_result.tool_results.items():
                tool_results[f"{step_result.step_id}:{key}"] = result
        try:
            self._analytics.record_workflow(
                run.workflow.id,
                run.ledger.duration_ms or 0,
                run.ledger.status == ExecutionStatus.COMPLETED,
                tool_results,
            )
        except Exception as e:
            logger.warning(f"[Workflow] Failed to record analytics for {run.workflow.id}: {e}")
