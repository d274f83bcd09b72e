"""In-memory implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Checkpoint, CheckpointType, WorkflowExecution
from .store import CheckpointStore


class InMemoryCheckpointStore(CheckpointStore):
    """Store checkpoints and ledgers in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, str] = {}
        self._checkpoints: Dict[str, List[Checkpoint]] = {}
        self._sequence = 0
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def save_checkpoint(
        self,
        execution_id: str,
        step_id: str,
        checkpoint_type: CheckpointType,
        data: Dict[str, Any],
    ) -> Checkpoint:
        async with self._lock:
            self._sequence += 1
            checkpoint = Checkpoint(
                execution_id=execution_id,
                step_id=step_id,
                checkpoint_type=checkpoint_type,
                data=data,
                sequence=self._sequence,
            )
            # round-trip through JSON so stored data cannot alias live objects
            stored = Checkpoint.model_validate_json(checkpoint.model_dump_json())
            self._checkpoints.setdefault(execution_id, []).append(stored)
        return checkpoint

    async def save_execution(self, execution: WorkflowExecution) -> None:
        async with self._lock:
            self._executions[execution.id] = execution.to_json()

    async def load_execution(self, execution_id: str) -> WorkflowExecution | None:
        raw = self._executions.get(execution_id)
        return WorkflowExecution.from_json(raw) if raw else None

    async def resume_from_checkpoint(self, execution_id: str) -> Dict[str, Any] | None:
        checkpoints = self._checkpoints.get(execution_id)
        if not checkpoints:
            return None
        return checkpoints[-1].data

    async def list_checkpoints(self, execution_id: str) -> List[Checkpoint]:
        return list(self._checkpoints.get(execution_id, []))

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> List[WorkflowExecution]:
        executions = [WorkflowExecution.from_json(raw) for raw in self._executions.values()]
        if user_id is not None:
            executions = [e for e in executions if e.user_id == user_id]
        executions.sort(key=lambda e: e.started_at, reverse=True)
        return executions[:limit]
