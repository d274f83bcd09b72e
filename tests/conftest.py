import asyncio
from typing import Any, Callable, Dict, List, Tuple

import pytest

from toolflow.contracts import ToolResult
from toolflow.gateway import ToolGateway


class RecordingGateway(ToolGateway):
    """Gateway double that records every call.

    Handlers take the params dict and return data; raising an exception makes
    ``execute`` raise it, as a broken transport would.
    """

    def __init__(self) -> None:
        self.handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.delay = 0.0

    def on(self, name: str, handler: Callable[[Dict[str, Any]], Any]) -> None:
        self.handlers[name] = handler

    def returns(self, name: str, data: Any) -> None:
        self.handlers[name] = lambda params: data

    def fails(self, name: str, error: str) -> None:
        self.handlers[name] = lambda params: ToolResult(success=False, error=error)

    def raises(self, name: str, exc: Exception) -> None:
        def handler(params):
            raise exc

        self.handlers[name] = handler

    def calls_for(self, name: str) -> List[Dict[str, Any]]:
        return [params for called, params in self.calls if called == name]

    async def execute(self, name: str, params: Dict[str, Any]) -> ToolResult:
        self.calls.append((name, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        handler = self.handlers.get(name)
        if handler is None:
            return ToolResult(success=False, error=f"Unknown tool: {name}")
        data = handler(params)
        if isinstance(data, ToolResult):
            return data
        return ToolResult(success=True, data=data, duration_ms=5)


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()
