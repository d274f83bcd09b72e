"""Progress events emitted while a workflow runs.

Callers pass a callback to the engine and receive a :class:`ProgressUpdate`
as each tool and step finishes, so partial results can be shown before the
whole run is done.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field

from .contracts import utcnow

logger = logging.getLogger(__name__)

ProgressType = Literal[
    "tool_start",
    "tool_complete",
    "tool_error",
    "step_start",
    "step_skipped",
    "step_complete",
    "step_failed",
    "workflow_complete",
]


class ProgressCounter(BaseModel):
    current: int
    total: int
    percentage: int

    @classmethod
    def of(cls, current: int, total: int) -> "ProgressCounter":
        percentage = round(current / total * 100) if total else 100
        return cls(current=current, total=total, percentage=percentage)


class ProgressUpdate(BaseModel):
    type: ProgressType
    execution_id: Optional[str] = None
    step_id: Optional[str] = None
    tool_name: Optional[str] = None
    data: Any = None
    error: Optional[str] = None
    progress: ProgressCounter
    timestamp: datetime = Field(default_factory=utcnow)


ProgressCallback = Callable[[ProgressUpdate], Union[None, Awaitable[None]]]


class ProgressReporter:
    """Deliver updates to an optional callback without ever failing the run."""

    def __init__(
        self, callback: Optional[ProgressCallback] = None, execution_id: Optional[str] = None
    ) -> None:
        self._callback = callback
        self.execution_id = execution_id

    @property
    def enabled(self) -> bool:
        return self._callback is not None

    async def emit(
        self,
        type: ProgressType,
        current: int,
        total: int,
        *,
        step_id: Optional[str] = None,
        tool_name: Optional[str] = None,
        data: Any = None,
        error: Optional[str] = None,
    ) -> None:
        if self._callback is None:
            return
        update = ProgressUpdate(
            type=type,
            execution_id=self.execution_id,
            step_id=step_id,
            tool_name=tool_name,
            data=data,
            error=error,
            progress=ProgressCounter.of(current, total),
        )
        try:
            outcome = self._callback(update)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress callback failed for {type}: {e}")
