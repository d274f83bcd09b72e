"""PostgreSQL implementation of the checkpoint store."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import asyncpg

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Checkpoint, CheckpointType, WorkflowExecution
from ..exceptions import PersistenceError
from .store import CheckpointStore


class PostgresCheckpointStore(CheckpointStore):
    """Persist checkpoints and ledgers using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
            if not self._initialized:
                await self._ensure_schema(conn)
                self._initialized = True
        except (OSError, asyncpg.PostgresError) as e:
            raise PersistenceError(f"Postgres connection failed: {e}") from e
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                user_id TEXT,
                status TEXT NOT NULL,
                started_at TIMESTAMPTZ NOT NULL,
                ledger JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                sequence BIGSERIAL PRIMARY KEY,
                execution_id TEXT NOT NULL,
                step_id TEXT NOT NULL,
                checkpoint_type TEXT NOT NULL,
                data JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_checkpoints_execution ON checkpoints (execution_id)"
        )

    @staticmethod
    def _load_json(value: Any) -> Any:
        return json.loads(value) if isinstance(value, str) else value

    # ------------------------------------------------------------------
    async def save_checkpoint(
        self,
        execution_id: str,
        step_id: str,
        checkpoint_type: CheckpointType,
        data: Dict[str, Any],
    ) -> Checkpoint:
        checkpoint = Checkpoint(
            execution_id=execution_id,
            step_id=step_id,
            checkpoint_type=checkpoint_type,
            data=data,
        )
        conn = await self._connect()
        try:
            checkpoint.sequence = await conn.fetchval(
                """
                INSERT INTO checkpoints (execution_id, step_id, checkpoint_type, data, created_at)
                VALUES ($1, $2, $3, $4, $5) RETURNING sequence
                """,
                execution_id,
                step_id,
                CheckpointType(checkpoint_type).value,
                json.dumps(data),
                checkpoint.created_at,
            )
        except (TypeError, ValueError, asyncpg.PostgresError) as e:
            raise PersistenceError(f"Failed to save checkpoint: {e}") from e
        finally:
            await conn.close()
        return checkpoint

    async def save_execution(self, execution: WorkflowExecution) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO executions (id, workflow_id, user_id, status, started_at, ledger)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (id) DO UPDATE SET status = EXCLUDED.status, ledger = EXCLUDED.ledger
                """,
                execution.id,
                execution.workflow_id,
                execution.user_id,
                execution.status.value,
                execution.started_at,
                execution.to_json(),
            )
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"Failed to save execution: {e}") from e
        finally:
            await conn.close()

    async def load_execution(self, execution_id: str) -> WorkflowExecution | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT ledger FROM executions WHERE id = $1", execution_id
            )
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"Failed to load execution: {e}") from e
        finally:
            await conn.close()
        if not row:
            return None
        return WorkflowExecution.model_validate(self._load_json(row["ledger"]))

    async def resume_from_checkpoint(self, execution_id: str) -> Dict[str, Any] | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT data FROM checkpoints WHERE execution_id = $1 ORDER BY sequence DESC LIMIT 1",
                execution_id,
            )
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"Failed to read checkpoint: {e}") from e
        finally:
            await conn.close()
        if not row:
            return None
        return self._load_json(row["data"])

    async def list_checkpoints(self, execution_id: str) -> List[Checkpoint]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT sequence, execution_id, step_id, checkpoint_type, data, created_at FROM checkpoints WHERE execution_id = $1 ORDER BY sequence",
                execution_id,
            )
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"Failed to list checkpoints: {e}") from e
        finally:
            await conn.close()
        return [
            Checkpoint(
                execution_id=r["execution_id"],
                step_id=r["step_id"],
                checkpoint_type=CheckpointType(r["checkpoint_type"]),
                data=self._load_json(r["data"]),
                sequence=r["sequence"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> List[WorkflowExecution]:
        conn = await self._connect()
        try:
            if user_id is None:
                rows = await conn.fetch(
                    "SELECT ledger FROM executions ORDER BY started_at DESC LIMIT $1",
                    limit,
                )
            else:
                rows = await conn.fetch(
                    "SELECT ledger FROM executions WHERE user_id = $1 ORDER BY started_at DESC LIMIT $2",
                    user_id,
                    limit,
                )
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"Failed to list executions: {e}") from e
        finally:
            await conn.close()
        return [WorkflowExecution.model_validate(self._load_json(r["ledger"])) for r in rows]
