"""Tool gateway factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ToolflowConfig, load_config
from .base import ToolGateway
from .local import LocalToolGateway, load_local_gateway


def get_gateway(
    backend: Optional[str] = None, config: Optional[ToolflowConfig] = None
) -> ToolGateway:
    """Factory function to get the configured tool gateway."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("TOOLFLOW_GATEWAY")
        or config.gateway.backend
    ).lower()

    if backend == "local":
        return LocalToolGateway()
    elif backend == "http":
        from .http import HttpToolGateway

        http_conf = config.gateway.http
        return HttpToolGateway(
            base_url=http_conf.base_url,
            timeout=http_conf.timeout,
            headers=http_conf.headers,
        )
    else:
        raise ValueError(f"Unsupported gateway backend: {backend}")


__all__ = ["ToolGateway", "LocalToolGateway", "get_gateway", "load_local_gateway"]
