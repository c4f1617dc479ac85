"""Abstract state store interface."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from .models import StoredState


class StateStore(ABC):
    """
    Persistence of last-applied resource state.

    Writes are conditional: ``expected_version`` is the version observed when
    the plan was computed, or None when the entry must not exist. A mismatch
    raises StateConflict. Versions are drawn from a store-wide serial so a
    deleted and re-created entry never reuses an old version.
    """

    @abstractmethod
    def get(self, address: str) -> Optional[StoredState]:
        """Return the stored entry, or None if the address is not stored."""
        pass

    @abstractmethod
    def put(self, address: str, state: StoredState, expected_version: Optional[int]) -> StoredState:
        """
        Write an entry if its current version equals expected_version.

        Returns:
            The stored copy carrying its new version

        Raises:
            StateConflict: If the stored version changed
        """
        pass

    @abstractmethod
    def delete(self, address: str, expected_version: Optional[int]) -> None:
        """Remove an entry if its current version equals expected_version."""
        pass

    @abstractmethod
    def list(self) -> List[StoredState]:
        """Return every stored entry, sorted by address."""
        pass

    @abstractmethod
    def lock(self, run_id: str) -> None:
        """
        Take the store-wide run lock.

        Re-locking with the same run id is allowed.

        Raises:
            StateLocked: If a different run holds the lock
        """
        pass

    @abstractmethod
    def unlock(self, run_id: str) -> None:
        """Release the run lock if run_id holds it."""
        pass

    @abstractmethod
    def lock_holder(self) -> Optional[str]:
        """Run id currently holding the lock, if any."""
        pass

    def snapshot(self) -> Dict[str, StoredState]:
        """Unsynchronized read of every entry, keyed by address."""
        return {state.address: state for state in self.list()}
