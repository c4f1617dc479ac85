"""converge - Declarative resource orchestration engine."""

from .utils.logging import setup_logging, get_logger

__version__ = "0.1.0"

setup_logging()
logger = get_logger("converge")

from .config import load_orchestrator_config
from .ingest.loader import load_declarations
from .orchestrator import Orchestrator
from .provider.memory import InMemoryProvider
from .state.local import LocalStateStore
from .state.memory import InMemoryStateStore
from .utils.cancellation import CancellationToken

__all__ = [
    "CancellationToken",
    "InMemoryProvider",
    "InMemoryStateStore",
    "LocalStateStore",
    "Orchestrator",
    "load_declarations",
    "load_orchestrator_config",
    "__version__",
]
