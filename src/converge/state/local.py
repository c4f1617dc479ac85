"""State store backed by a single JSON document on local disk."""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from pydantic import ValidationError
from .base import StateStore
from .models import StoredState, utc_now
from ..utils.errors import StateConflict, StateError, StateLocked
from ..utils.logging import get_logger

logger = get_logger("state.local")

STATE_FORMAT_VERSION = 1


class LocalStateStore(StateStore):
    """
    JSON state file. Every write rewrites the document atomically.

    Document layout::

        {"format_version": 1, "serial": 7, "lock": null,
         "resources": {"aws_vpc.main": {...}}}
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._mutex = threading.RLock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"format_version": STATE_FORMAT_VERSION, "serial": 0, "lock": None, "resources": {}}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"Invalid JSON in state file {self.path}: {e}")
        except OSError as e:
            raise StateError(f"Error reading state file {self.path}: {e}")

        if not isinstance(document, dict) or "resources" not in document:
            raise StateError(f"State file {self.path} must contain a 'resources' mapping")
        if document.get("format_version", STATE_FORMAT_VERSION) > STATE_FORMAT_VERSION:
            raise StateError(
                f"State file {self.path} uses format {document['format_version']}, "
                f"newer than supported format {STATE_FORMAT_VERSION}"
            )
        document.setdefault("serial", 0)
        document.setdefault("lock", None)
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".converge-state-", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, sort_keys=True, default=str)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StateError(f"Failed to write state file {self.path}: {e}")

    def _entry(self, document: Dict[str, Any], address: str) -> Optional[StoredState]:
        raw = document["resources"].get(address)
        if raw is None:
            return None
        try:
            return StoredState(**raw)
        except ValidationError as e:
            raise StateError(f"Invalid state entry for {address}: {e}")

    def get(self, address: str) -> Optional[StoredState]:
        with self._mutex:
            return self._entry(self._read(), address)

    def put(self, address: str, state: StoredState, expected_version: Optional[int]) -> StoredState:
        with self._mutex:
            document = self._read()
            current = self._entry(document, address)
            actual = current.version if current is not None else None
            if actual != expected_version:
                raise StateConflict(address, expected_version, actual)
            document["serial"] += 1
            stored = state.model_copy(
                deep=True, update={"address": address, "version": document["serial"], "updated_at": utc_now()}
            )
            document["resources"][address] = stored.model_dump(mode="json")
            self._write(document)
            logger.debug(f"Stored {address} at version {stored.version} in {self.path}")
            return stored

    def delete(self, address: str, expected_version: Optional[int]) -> None:
        with self._mutex:
            document = self._read()
            current = self._entry(document, address)
            actual = current.version if current is not None else None
            if actual != expected_version:
                raise StateConflict(address, expected_version, actual)
            if current is None:
                return
            del document["resources"][address]
            document["serial"] += 1
            self._write(document)
            logger.debug(f"Removed {address} from {self.path}")

    def list(self) -> List[StoredState]:
        with self._mutex:
            document = self._read()
            return [self._entry(document, address) for address in sorted(document["resources"])]

    def lock(self, run_id: str) -> None:
        with self._mutex:
            document = self._read()
            holder = document.get("lock")
            if holder is not None and holder != run_id:
                raise StateLocked(holder, run_id)
            document["lock"] = run_id
            self._write(document)

    def unlock(self, run_id: str) -> None:
        with self._mutex:
            document = self._read()
            holder = document.get("lock")
            if holder is None:
                return
            if holder != run_id:
                logger.warning(f"Run {run_id} tried to release a lock held by {holder}")
                return
            document["lock"] = None
            self._write(document)

    def lock_holder(self) -> Optional[str]:
        with self._mutex:
            return self._read().get("lock")
