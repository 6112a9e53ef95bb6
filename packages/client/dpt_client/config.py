"""
Configuration loading and validation.

Loads dashboard configuration from a YAML file with environment variable
resolution for secrets (passwords and tokens are never stored in config files).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    url: str = "http://localhost:8000"
    verify_tls: bool = True
    request_timeout_seconds: int = 30


class CredentialsConfig(BaseModel):
    email: Optional[str] = None
    password_env: str = "DPT_PASSWORD"
    # Token handed over by the collaborating dashboard; used instead of a password when set
    cross_project_token_env: str = "DPT_CROSS_PROJECT_TOKEN"

    @property
    def password(self) -> str | None:
        return os.environ.get(self.password_env)

    @property
    def cross_project_token(self) -> str | None:
        return os.environ.get(self.cross_project_token_env)


class RefreshConfig(BaseModel):
    interval_seconds: float = 60.0
    inbox_interval_seconds: float = 30.0
    transition_timeout_seconds: float = 15.0
    # Only requests created within this many days; None shows everything
    window_days: Optional[int] = None


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class DashboardConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path) -> DashboardConfig:
    """Load and validate dashboard configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return DashboardConfig.model_validate(raw)
