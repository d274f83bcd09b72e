from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_LOCATION


class HttpGatewayConfig(BaseModel):
    """Configuration for the HTTP tool gateway."""

    base_url: str = "http://localhost:8080"
    timeout: float = 60.0
    headers: Dict[str, str] = Field(default_factory=dict)


class GatewayConfig(BaseModel):
    """Tool gateway settings."""

    backend: Literal["local", "http"] = "local"
    http: HttpGatewayConfig = HttpGatewayConfig()


class EngineConfig(BaseModel):
    """Engine behaviour settings."""

    required_tool_policy: Literal["degrade", "escalate"] = "degrade"
    default_location: str = DEFAULT_LOCATION


class ToolflowConfig(BaseModel):
    """Top-level configuration model."""

    gateway: GatewayConfig = GatewayConfig()
    engine: EngineConfig = EngineConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> ToolflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to TOOLFLOW_CONFIG env
            variable or 'toolflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("TOOLFLOW_CONFIG", "toolflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ToolflowConfig(**data)
    else:
        config = ToolflowConfig()

    env_db_url = os.getenv("TOOLFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
