"""Per-execution memo table for tool results."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from .contracts import ToolResult

logger = logging.getLogger(__name__)


class ResultCache:
    """Memoise tool results by ``(tool name, resolved params)``.

    One instance belongs to one execution. ``fetch`` coalesces concurrent
    loads for the same key, so sibling tools in a parallel step that resolve
    to identical calls share a single gateway invocation.
    """

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self._inflight: Dict[str, asyncio.Future] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(tool_name: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Deterministic key independent of parameter ordering."""
        payload = json.dumps(params or {}, sort_keys=True, default=str)
        digest = hashlib.sha256(f"{tool_name}:{payload}".encode("utf-8"))
        return f"{tool_name}:{digest.hexdigest()}"

    def has(self, key: str) -> bool:
        return key in self._values

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._values), "hits": self.hits, "misses": self.misses}

    async def fetch(
        self, key: str, loader: Callable[[], Awaitable[ToolResult]]
    ) -> Tuple[ToolResult, bool]:
        """Return ``(result, cached)`` for ``key``.

        Only successful results are memoised, and only their ``data``.
        Callers that wait on another caller's in-flight load share its
        successful result with ``cached=True``; a failed load is not shared
        and each waiter loads again.
        """
        if key in self._values:
            self.hits += 1
            logger.debug(f"Cache hit for {key}")
            return ToolResult(success=True, data=self._values[key]), True

        pending = self._inflight.get(key)
        if pending is not None:
            result = await asyncio.shield(pending)
            if result.success:
                self.hits += 1
                return result, True
            return await self.fetch(key, loader)

        self.misses += 1
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await loader()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # mark retrieved so an unawaited failure does not warn at shutdown
            future.exception()
            raise
        else:
            future.set_result(result)
            if result.success:
                self._values[key] = result.data
            return result, False
        finally:
            self._inflight.pop(key, None)
