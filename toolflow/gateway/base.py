"""Base tool gateway interface."""

from __future__ import annotations

import abc
from typing import Any, Dict

from ..contracts import ToolResult


class ToolGateway(metaclass=abc.ABCMeta):
    """Uniform entry point to every external tool.

    The engine does not interpret tool names; dispatching a name to a
    concrete backend is entirely the gateway's job.
    """

    @abc.abstractmethod
    async def execute(self, name: str, params: Dict[str, Any]) -> ToolResult:
        """Invoke tool ``name`` with resolved ``params``.

        Business failures are reported with ``success=False``. Implementations
        may raise :class:`~toolflow.exceptions.ToolInvocationError` when the
        call itself could not be made.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release resources held by the gateway (no-op by default)."""
        pass
