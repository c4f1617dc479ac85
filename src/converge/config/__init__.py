"""Configuration module: load and validate orchestrator settings."""

import os
from typing import Any, Dict, Optional
from pydantic import ValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config
from .models import ExecutorConfig, OrchestratorConfig, ReadinessConfig, RetryConfig
from .paths import get_defaults_path, get_project_config_path, get_user_config_path

logger = get_logger("config")

CONCURRENCY_ENV = "CONVERGE_CONCURRENCY"


def load_orchestrator_config(config_path: Optional[str] = None) -> OrchestratorConfig:
    """
    Load configuration from the layered YAML files and the environment.
    
    Args:
        config_path: Optional explicit config file merged last
        
    Returns:
        Validated OrchestratorConfig
        
    Raises:
        ConfigError: If a file cannot be read or the merged tree is invalid
    """
    data = load_config(config_path)
    _apply_environment(data)
    return build_config(data)


def build_config(data: Dict[str, Any]) -> OrchestratorConfig:
    """Validate a config dictionary."""
    try:
        config = OrchestratorConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")
    logger.info(
        f"Loaded configuration: concurrency={config.executor.concurrency}, "
        f"{len(config.resource_types)} resource type schemas"
    )
    return config


def _apply_environment(data: Dict[str, Any]) -> None:
    raw = os.getenv(CONCURRENCY_ENV)
    if not raw:
        return
    try:
        concurrency = int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {CONCURRENCY_ENV}={raw!r}; expected an integer")
        return
    data.setdefault("executor", {})["concurrency"] = concurrency


__all__ = [
    "ExecutorConfig",
    "OrchestratorConfig",
    "ReadinessConfig",
    "RetryConfig",
    "build_config",
    "get_defaults_path",
    "get_project_config_path",
    "get_user_config_path",
    "load_config",
    "load_orchestrator_config",
]
