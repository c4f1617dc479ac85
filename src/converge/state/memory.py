"""In-process state store."""

import threading
from typing import Dict, List, Optional
from .base import StateStore
from .models import StoredState, utc_now
from ..utils.errors import StateConflict, StateLocked
from ..utils.logging import get_logger

logger = get_logger("state.memory")


class InMemoryStateStore(StateStore):
    """State store held in process memory, with per-address write serialization."""

    def __init__(self):
        self._entries: Dict[str, StoredState] = {}
        self._serial = 0
        self._lock_holder: Optional[str] = None
        self._registry_lock = threading.Lock()
        self._address_locks: Dict[str, threading.Lock] = {}

    def _address_lock(self, address: str) -> threading.Lock:
        with self._registry_lock:
            if address not in self._address_locks:
                self._address_locks[address] = threading.Lock()
            return self._address_locks[address]

    def _current_version(self, address: str) -> Optional[int]:
        entry = self._entries.get(address)
        return entry.version if entry is not None else None

    def get(self, address: str) -> Optional[StoredState]:
        entry = self._entries.get(address)
        return entry.model_copy(deep=True) if entry is not None else None

    def put(self, address: str, state: StoredState, expected_version: Optional[int]) -> StoredState:
        with self._address_lock(address):
            actual = self._current_version(address)
            if actual != expected_version:
                raise StateConflict(address, expected_version, actual)
            with self._registry_lock:
                self._serial += 1
                serial = self._serial
            stored = state.model_copy(deep=True, update={"address": address, "version": serial, "updated_at": utc_now()})
            self._entries[address] = stored
            logger.debug(f"Stored {address} at version {serial}")
            return stored.model_copy(deep=True)

    def delete(self, address: str, expected_version: Optional[int]) -> None:
        with self._address_lock(address):
            actual = self._current_version(address)
            if actual != expected_version:
                raise StateConflict(address, expected_version, actual)
            self._entries.pop(address, None)
            logger.debug(f"Removed {address} from state")

    def list(self) -> List[StoredState]:
        with self._registry_lock:
            entries = list(self._entries.values())
        return [e.model_copy(deep=True) for e in sorted(entries, key=lambda e: e.address)]

    def lock(self, run_id: str) -> None:
        with self._registry_lock:
            if self._lock_holder is not None and self._lock_holder != run_id:
                raise StateLocked(self._lock_holder, run_id)
            self._lock_holder = run_id

    def unlock(self, run_id: str) -> None:
        with self._registry_lock:
            if self._lock_holder == run_id:
                self._lock_holder = None
            elif self._lock_holder is not None:
                logger.warning(f"Run {run_id} tried to release a lock held by {self._lock_holder}")

    def lock_holder(self) -> Optional[str]:
        return self._lock_holder
