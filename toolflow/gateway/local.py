"""In-process tool gateway backed by registered Python callables."""

from __future__ import annotations

import asyncio
import inspect
import logging
import sys
import time
from importlib.util import module_from_spec, spec_from_file_location
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..contracts import ToolResult
from .base import ToolGateway

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Any]


class LocalToolGateway(ToolGateway):
    """Dispatch tool names to local handlers.

    Handlers receive the resolved parameters as keyword arguments and may be
    plain functions or coroutines. Exceptions raised by a handler, and
    timeouts, are reported as failed results rather than propagated.
    """

    def __init__(
        self,
        handlers: Optional[Dict[str, ToolHandler]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._handlers: Dict[str, ToolHandler] = dict(handlers or {})
        self._timeout = timeout

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[name] = handler

    def tool(self, name: Optional[str] = None) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator registering a handler under ``name`` (or its own name)."""

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(name or handler.__name__, handler)
            return handler

        return decorator

    @property
    def tool_names(self) -> List[str]:
        return sorted(self._handlers)

    async def _call(self, handler: ToolHandler, params: Dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(handler):
            return await handler(**params)
        result = await asyncio.to_thread(handler, **params)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def execute(self, name: str, params: Dict[str, Any]) -> ToolResult:
        handler = self._handlers.get(name)
        if handler is None:
            return ToolResult(success=False, error=f"Unknown tool: {name}")

        start = time.perf_counter()
        try:
            if self._timeout is not None:
                data = await asyncio.wait_for(self._call(handler, params), self._timeout)
            else:
                data = await self._call(handler, params)
        except asyncio.TimeoutError:
            duration = int((time.perf_counter() - start) * 1000)
            logger.warning(f"Tool {name} timed out after {self._timeout}s")
            return ToolResult(
                success=False,
                error=f"Tool {name} timed out after {self._timeout}s",
                duration_ms=duration,
            )
        except Exception as e:
            duration = int((time.perf_counter() - start) * 1000)
            return ToolResult(success=False, error=str(e), duration_ms=duration)

        duration = int((time.perf_counter() - start) * 1000)
        return ToolResult(success=True, data=data, duration_ms=duration)


def load_local_gateway(path: Path, attribute: str = "gateway") -> LocalToolGateway:
    """Import a Python file and return the :class:`LocalToolGateway` it defines.

    Raises:
        ValueError: If the file defines no gateway under ``attribute``.
    """
    path = Path(path)
    module_name = path.stem
    spec = spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Cannot import tools from {path}")
    module_obj = module_from_spec(spec)
    sys.modules[module_name] = module_obj
    spec.loader.exec_module(module_obj)

    gateway = getattr(module_obj, attribute, None)
    if not isinstance(gateway, LocalToolGateway):
        raise ValueError(f"No LocalToolGateway named '{attribute}' found in {path}")
    logger.debug(f"Loaded {len(gateway.tool_names)} tool(s) from {path}")
    return gateway
