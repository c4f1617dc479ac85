"""State store interface and bundled backends."""

from .models import StoredState
from .base import StateStore
from .memory import InMemoryStateStore
from .local import LocalStateStore

__all__ = ["StoredState", "StateStore", "InMemoryStateStore", "LocalStateStore"]
