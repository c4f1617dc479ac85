"""CLI utilities package."""

from pathlib import Path
from typing import List, Optional, Tuple
from ...config import load_orchestrator_config
from ...config.models import OrchestratorConfig
from ...ingest.loader import load_declarations
from ...model.models import ResourceDeclaration
from ...state.base import StateStore
from ...state.local import LocalStateStore
from ...state.memory import InMemoryStateStore
from ...utils.logging import get_logger
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def load_inputs(
    declarations_file: str,
    config_path: Optional[str] = None,
) -> Tuple[List[ResourceDeclaration], OrchestratorConfig]:
    """
    Shared input loading helper - every command that reads declarations calls this.

    Raises:
        FileNotFoundError: If the declaration file does not exist
        ConvergeError: If the declarations or the configuration are invalid
    """
    path = resolve_file_path(declarations_file)
    config = load_orchestrator_config(config_path)
    declarations = load_declarations(str(path))
    return declarations, config


def open_state(state_path: Optional[str]) -> StateStore:
    """
    Open a local state file, or an empty in-memory store.

    A state path that does not exist yet means nothing has been applied;
    planning must not create the file.
    """
    if state_path is None or not Path(state_path).exists():
        if state_path is not None:
            logger.info(f"State file {state_path} does not exist; planning against empty state")
        return InMemoryStateStore()
    return LocalStateStore(state_path)


__all__ = ["format_error", "load_inputs", "open_state", "resolve_file_path"]
