"""Store abstraction for checkpoints and execution ledgers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Checkpoint, CheckpointType, WorkflowExecution


class CheckpointStore(Protocol):
    """Protocol for checkpoint and execution persistence backends.

    Checkpoints are append-only and keyed by ``(execution_id, step_id)``;
    the ledger snapshot is keyed by ``execution_id`` and replaced on save.
    Backends raise :class:`~toolflow.exceptions.PersistenceError` on failure
    and perform no retries.
    """

    async def save_checkpoint(
        self,
        execution_id: str,
        step_id: str,
        checkpoint_type: CheckpointType,
        data: Dict[str, Any],
    ) -> Checkpoint:
        """Append a checkpoint."""

    async def save_execution(self, execution: WorkflowExecution) -> None:
        """Persist the ledger snapshot."""

    async def load_execution(self, execution_id: str) -> WorkflowExecution | None:
        """Retrieve a ledger by id."""

    async def resume_from_checkpoint(self, execution_id: str) -> Dict[str, Any] | None:
        """Return the data of the most recent checkpoint for an execution."""

    async def list_checkpoints(self, execution_id: str) -> List[Checkpoint]:
        """Return all checkpoints for an execution, oldest first."""

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> List[WorkflowExecution]:
        """Return ledgers, newest first."""
