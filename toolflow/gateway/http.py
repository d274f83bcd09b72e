"""HTTP tool gateway.

Posts resolved parameters as JSON to ``{base_url}/tools/{name}`` and expects
a ``{"success": bool, "data": ..., "error": str}`` body back.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..contracts import ToolResult
from ..exceptions import ToolInvocationError
from .base import ToolGateway

logger = logging.getLogger(__name__)


class HttpToolGateway(ToolGateway):
    """Remote tool server reached over HTTP."""

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 60.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, headers=headers or {}
        )

    async def execute(self, name: str, params: Dict[str, Any]) -> ToolResult:
        start = time.perf_counter()
        try:
            response = await self._client.post(f"/tools/{name}", json=params)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise ToolInvocationError(name, f"Tool {name} timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise ToolInvocationError(
                name, f"Tool {name} returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ToolInvocationError(name, f"Tool {name} request failed: {e}") from e

        duration = int((time.perf_counter() - start) * 1000)
        if not isinstance(body, dict) or "success" not in body:
            raise ToolInvocationError(name, f"Tool {name} returned an invalid response")

        logger.debug(f"Tool {name} responded in {duration}ms")
        return ToolResult(
            success=bool(body["success"]),
            data=body.get("data"),
            error=body.get("error"),
            duration_ms=duration,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
