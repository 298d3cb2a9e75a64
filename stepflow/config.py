from __future__ import annotations

import os
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import PlanError

DEFAULT_CONFIG_FILE = "stepflow.config.yaml"

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


class MarkerConfig(BaseModel):
    """Configuration for the default file-based marker store."""

    directory: str = "."
    prefix: str = ".setup_completed_"


class StepflowConfig(BaseModel):
    """Top-level configuration model."""

    model_config = ConfigDict(validate_assignment=True)

    plan: str = "stepflow.yaml"
    marker_url: Optional[str] = None
    markers: MarkerConfig = MarkerConfig()
    reset_on_success: bool = True
    log_level: LogLevel = "INFO"
    command_timeout: Optional[float] = None

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


def load_config(path: Optional[str] = None) -> StepflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPFLOW_CONFIG env
            variable or 'stepflow.config.yaml' in the current directory.
    """

    config_path = path or os.getenv("STEPFLOW_CONFIG", DEFAULT_CONFIG_FILE)
    if os.path.exists(config_path):
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            config = StepflowConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as exc:
            raise PlanError(f"Invalid configuration file {config_path}: {exc}") from exc
    elif path:
        raise PlanError(f"Configuration file not found: {path}")
    else:
        config = StepflowConfig()

    env_marker_url = os.getenv("STEPFLOW_MARKER_URL")
    if env_marker_url:
        config.marker_url = env_marker_url
    env_log_level = os.getenv("STEPFLOW_LOG_LEVEL")
    if env_log_level:
        try:
            config.log_level = env_log_level
        except ValidationError as exc:
            raise PlanError(f"Invalid STEPFLOW_LOG_LEVEL {env_log_level!r}: {exc}") from exc
    return config
