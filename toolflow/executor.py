"""Step execution: running a step's tools through the cache and gateway."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from .analytics import AnalyticsSink, NullAnalytics
from .cache import ResultCache
from .constants import DUPLICATE_RESULT_SEPARATOR
from .contracts import (
    RequiredToolPolicy,
    StepResult,
    StepStatus,
    ToolExecutionResult,
    ToolResult,
    WorkflowContext,
    WorkflowStep,
    WorkflowTool,
    utcnow,
)
from .exceptions import RequiredToolFailed, StepOrchestrationError
from .gateway import ToolGateway
from .progress import ProgressReporter
from .resolver import ParameterResolver, build_context

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def result_keys(tools: List[WorkflowTool]) -> List[str]:
    """Map each tool to a unique result key, suffixing repeats with ``#n``."""
    seen: Dict[str, int] = {}
    keys = []
    for tool in tools:
        base = tool.result_key
        seen[base] = seen.get(base, 0) + 1
        keys.append(
            base if seen[base] == 1 else f"{base}{DUPLICATE_RESULT_SEPARATOR}{seen[base]}"
        )
    return keys


class StepExecutor:
    """Run the tools of one step, in parallel or one after another.

    A tool failure never aborts its siblings; it is captured on the
    :class:`StepResult`. Only :class:`StepOrchestrationError` escapes.
    """

    def __init__(
        self,
        gateway: ToolGateway,
        resolver: Optional[ParameterResolver] = None,
        analytics: Optional[AnalyticsSink] = None,
        required_tool_policy: RequiredToolPolicy = RequiredToolPolicy.DEGRADE,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver or ParameterResolver()
        self._analytics = analytics or NullAnalytics()
        self.required_tool_policy = RequiredToolPolicy(required_tool_policy)

    async def run(
        self,
        step: WorkflowStep,
        context: WorkflowContext,
        cache: Optional[ResultCache] = None,
        result: Optional[StepResult] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> StepResult:
        """Execute ``step`` and fill ``result`` with per-tool outcomes.

        ``result`` must be ``pending`` or ``running``; a fresh one is created
        when omitted. Its status is left ``running``: deciding the terminal
        status is the caller's job.
        """
        cache = cache if cache is not None else ResultCache()
        progress = progress or ProgressReporter()
        if result is None:
            result = StepResult(step_id=step.id)
        if result.status == StepStatus.PENDING:
            result.transition(StepStatus.RUNNING)
        if result.started_at is None:
            result.started_at = utcnow()

        start = time.perf_counter()
        try:
            self._validate(step)
            if step.parallel:
                await self._run_parallel(step, context, cache, result, progress)
            else:
                await self._run_sequential(step, context, cache, result, progress)
            self._check_required(step, result)
        finally:
            result.ended_at = utcnow()
            result.duration_ms = _elapsed_ms(start)
        return result

    # ------------------------------------------------------------------
    def _validate(self, step: WorkflowStep) -> None:
        for tool in step.tools:
            if not tool.name or not tool.name.strip():
                raise StepOrchestrationError(step.id, f"Step {step.id} has a tool without a name")

    def _resolve(
        self, step: WorkflowStep, tool: WorkflowTool, resolved_context: Dict[str, Any]
    ) -> Dict[str, Any]:
        try:
            return self._resolver.resolve(tool.params, resolved_context)
        except Exception as e:
            raise StepOrchestrationError(
                step.id, f"Failed to resolve parameters for {tool.name}: {e}"
            ) from e

    def _context(
        self, context: WorkflowContext, local: Optional[Dict[str, ToolExecutionResult]] = None
    ) -> Dict[str, Any]:
        return build_context(
            context.user_query,
            context.parameters,
            context.previous_step_results.values(),
            local,
        )

    async def _run_parallel(
        self,
        step: WorkflowStep,
        context: WorkflowContext,
        cache: ResultCache,
        result: StepResult,
        progress: ProgressReporter,
    ) -> None:
        logger.info(f"Executing {len(step.tools)} tools in parallel for step {step.id}")
        snapshot = self._context(context)
        keys = result_keys(step.tools)
        resolved = [self._resolve(step, tool, snapshot) for tool in step.tools]
        total = len(step.tools)
        done = 0

        async def run_one(tool: WorkflowTool, params: Dict[str, Any]) -> ToolExecutionResult:
            nonlocal done
            await progress.emit("tool_start", done, total, step_id=step.id, tool_name=tool.name)
            outcome = await self._invoke(tool, params, cache)
            done += 1
            await self._report(progress, step, tool, outcome, done, total)
            return outcome

        outcomes = await asyncio.gather(
            *(run_one(tool, params) for tool, params in zip(step.tools, resolved)),
            return_exceptions=True,
        )

        for key, tool, outcome in zip(keys, step.tools, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                outcome = ToolExecutionResult(
                    tool_name=tool.name,
                    success=False,
                    error=_error_text(outcome),
                    required=tool.required,
                )
            result.tool_results[key] = outcome
            if not outcome.success:
                if tool.required:
                    logger.error(f"Required tool {tool.name} failed: {outcome.error}")
                else:
                    logger.warning(f"Optional tool {tool.name} failed: {outcome.error}")

        failed = result.failed_tools()
        logger.info(f"Success: {total - len(failed)}/{total} tools for step {step.id}")
        if failed:
            logger.info(f"Failed tools: {', '.join(failed)}")

    async def _run_sequential(
        self,
        step: WorkflowStep,
        context: WorkflowContext,
        cache: ResultCache,
        result: StepResult,
        progress: ProgressReporter,
    ) -> None:
        logger.info(f"Executing {len(step.tools)} tools sequentially for step {step.id}")
        total = len(step.tools)
        for index, (key, tool) in enumerate(zip(result_keys(step.tools), step.tools)):
            params = self._resolve(step, tool, self._context(context, result.tool_results))
            await progress.emit("tool_start", index, total, step_id=step.id, tool_name=tool.name)
            try:
                outcome = await self._invoke(tool, params, cache)
            except StepOrchestrationError:
                raise
            except Exception as e:
                outcome = ToolExecutionResult(
                    tool_name=tool.name,
                    success=False,
                    error=_error_text(e),
                    required=tool.required,
                )
            result.tool_results[key] = outcome
            await self._report(progress, step, tool, outcome, index + 1, total)
            if not outcome.success:
                level = logging.ERROR if tool.required else logging.WARNING
                kind = "Required" if tool.required else "Optional"
                logger.log(level, f"{kind} tool {tool.name} failed: {outcome.error}")

    async def _report(
        self,
        progress: ProgressReporter,
        step: WorkflowStep,
        tool: WorkflowTool,
        outcome: ToolExecutionResult,
        done: int,
        total: int,
    ) -> None:
        if outcome.success:
            await progress.emit(
                "tool_complete", done, total, step_id=step.id, tool_name=tool.name, data=outcome.data
            )
        else:
            await progress.emit(
                "tool_error", done, total, step_id=step.id, tool_name=tool.name, error=outcome.error
            )

    async def _invoke(
        self, tool: WorkflowTool, params: Dict[str, Any], cache: ResultCache
    ) -> ToolExecutionResult:
        """Call one tool through the cache; gateway errors become failed results."""
        start = time.perf_counter()

        async def load() -> ToolResult:
            logger.debug(f"Executing tool: {tool.name} {params}")
            load_start = time.perf_counter()
            try:
                return await self._gateway.execute(tool.name, params)
            except StepOrchestrationError:
                raise
            except Exception as e:
                logger.error(f"Tool {tool.name} failed: {e}")
                return ToolResult(
                    success=False, error=_error_text(e), duration_ms=_elapsed_ms(load_start)
                )

        key = cache.key(tool.name, params)
        outcome, cached = await cache.fetch(key, load)
        if cached:
            duration = _elapsed_ms(start)
            logger.debug(f"Cache hit for {tool.name}")
        else:
            duration = outcome.duration_ms or _elapsed_ms(start)

        self._record_tool(tool.name, duration, outcome.success, cached)
        return ToolExecutionResult(
            tool_name=tool.name,
            success=outcome.success,
            data=outcome.data,
            error=None if outcome.success else (outcome.error or "Unknown error"),
            cached=cached,
            duration_ms=duration,
            required=tool.required,
        )

    def _record_tool(self, name: str, duration: int, success: bool, cached: bool) -> None:
        try:
            self._analytics.record_tool(name, duration, success, cached)
        except Exception as e:
            logger.warning(f"Failed to record analytics for tool {name}: {e}")

    def _check_required(self, step: WorkflowStep, result: StepResult) -> None:
        failed_required = result.failed_tools(required=True)
        if not failed_required:
            return
        if self.required_tool_policy == RequiredToolPolicy.ESCALATE:
            raise RequiredToolFailed(step.id, failed_required)
        logger.warning(
            f"Step {step.id} completed with failed required tools: {', '.join(failed_required)}"
        )
