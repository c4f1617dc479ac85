"""
In-memory provider.

Used for tests and local dry runs. It behaves like a small cloud keyed by
generated identifiers and supports fault injection: transient and fatal
errors, resources that never become ready, out-of-band deletion,
pre-existing resources (for adoption), and creates that succeed on the
provider side but report a transient failure to the caller.
"""

import itertools
import threading
import time
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field
from .base import Provider, ProviderResource, ProviderResult, ProviderStatus
from ..utils.errors import FatalProviderError, ResourceAlreadyExists, ResourceNotFound, TransientProviderError
from ..utils.logging import get_logger

logger = get_logger("provider.memory")


class ProviderCall(BaseModel):
    """One recorded provider call."""
    operation: str
    resource_type: str
    identifier: Optional[str] = None
    started: float = Field(..., description="time.monotonic() at call start")
    finished: float = Field(0.0, description="time.monotonic() at call end")
    thread: str = ""


class _Resource(BaseModel):
    identifier: str
    type: str
    alias: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    polls: int = 0


class InMemoryProvider(Provider):
    """
    Thread-safe simulated cloud.

    Two resources of the same type collide on create when both carry the
    same ``name`` attribute; the collision is reported as
    ResourceAlreadyExists with the existing identifier.
    """

    def __init__(self, output_names: Optional[Dict[str, List[str]]] = None, latency: float = 0.0):
        self.output_names = output_names or {}
        self.latency = latency
        self.resources: Dict[str, _Resource] = {}
        self.calls: List[ProviderCall] = []
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._transient: Dict[Tuple[str, str], int] = {}
        self._fatal: Dict[Tuple[str, str], str] = {}
        self._ambiguous: Dict[str, int] = {}
        self._ready_after: Dict[str, Optional[int]] = {}
        self._failed_readiness: set = set()

    # Fault injection

    def fail_transient(self, resource_type: str, times: int, operation: str = "create") -> None:
        """Raise TransientProviderError for the next `times` calls of operation on resource_type."""
        self._transient[(operation, resource_type)] = times

    def fail_fatal(self, resource_type: str, message: str = "validation failed", operation: str = "create") -> None:
        """Raise FatalProviderError for every call of operation on resource_type."""
        self._fatal[(operation, resource_type)] = message

    def succeed_then_time_out(self, resource_type: str, times: int = 1) -> None:
        """Create the resource but report a transient timeout to the caller."""
        self._ambiguous[resource_type] = times

    def ready_after(self, resource_type: str, polls: Optional[int]) -> None:
        """Report READY after `polls` status calls; None means never ready."""
        self._ready_after[resource_type] = polls

    def fail_readiness(self, resource_type: str) -> None:
        """Report FAILED from poll_status for resource_type."""
        self._failed_readiness.add(resource_type)

    def clear_faults(self) -> None:
        """Remove every injected fault."""
        with self._lock:
            self._transient.clear()
            self._fatal.clear()
            self._ambiguous.clear()
            self._ready_after.clear()
            self._failed_readiness.clear()

    def delete_out_of_band(self, identifier: str) -> None:
        """Remove a resource without telling the orchestrator."""
        with self._lock:
            self.resources.pop(identifier, None)

    def seed(self, resource_type: str, attributes: Dict[str, Any], alias: Optional[str] = None) -> str:
        """Create a resource directly, as if it existed before the orchestrator ran."""
        with self._lock:
            resource = self._new_resource(resource_type, attributes, alias)
            return resource.identifier

    # Inspection helpers

    def operations(self, operation: Optional[str] = None) -> List[Tuple[str, str]]:
        """Recorded (operation, resource_type) pairs, optionally filtered."""
        return [
            (call.operation, call.resource_type)
            for call in self.calls
            if operation is None or call.operation == operation
        ]

    def find(self, resource_type: str) -> List[_Resource]:
        return [r for r in self.resources.values() if r.type == resource_type]

    # Provider interface

    def create(self, resource_type: str, attributes: Dict[str, Any], alias: Optional[str] = None) -> ProviderResult:
        call = self._begin("create", resource_type)
        try:
            with self._lock:
                self._inject("create", resource_type)
                existing = self._collision(resource_type, attributes)
                if existing is not None:
                    raise ResourceAlreadyExists(existing.identifier)
                resource = self._new_resource(resource_type, attributes, alias)
                call.identifier = resource.identifier
                if self._ambiguous.get(resource_type, 0) > 0:
                    self._ambiguous[resource_type] -= 1
                    raise TransientProviderError(f"timed out waiting for create of {resource_type}")
                return ProviderResult(identifier=resource.identifier, outputs=dict(resource.outputs))
        finally:
            self._end(call)

    def read(self, identifier: str) -> ProviderResource:
        resource_type = self._type_of(identifier)
        call = self._begin("read", resource_type, identifier)
        try:
            with self._lock:
                self._inject("read", resource_type)
                resource = self._get(identifier)
                return ProviderResource(attributes=dict(resource.attributes), outputs=dict(resource.outputs))
        finally:
            self._end(call)

    def update(self, identifier: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        resource_type = self._type_of(identifier)
        call = self._begin("update", resource_type, identifier)
        try:
            with self._lock:
                self._inject("update", resource_type)
                resource = self._get(identifier)
                resource.attributes.update(changes)
                return dict(resource.outputs)
        finally:
            self._end(call)

    def delete(self, identifier: str) -> None:
        resource_type = self._type_of(identifier)
        call = self._begin("delete", resource_type, identifier)
        try:
            with self._lock:
                self._inject("delete", resource_type)
                self._get(identifier)
                del self.resources[identifier]
        finally:
            self._end(call)

    def poll_status(self, identifier: str) -> ProviderStatus:
        resource_type = self._type_of(identifier)
        call = self._begin("poll_status", resource_type, identifier)
        try:
            with self._lock:
                self._inject("poll_status", resource_type)
                resource = self._get(identifier)
                resource.polls += 1
                if resource_type in self._failed_readiness:
                    return ProviderStatus.FAILED
                threshold = self._ready_after.get(resource_type, 0)
                if threshold is None or resource.polls <= threshold:
                    return ProviderStatus.PENDING
                return ProviderStatus.READY
        finally:
            self._end(call)

    # Internals

    def _new_resource(self, resource_type: str, attributes: Dict[str, Any], alias: Optional[str]) -> _Resource:
        identifier = f"{resource_type}-{next(self._ids):04d}"
        outputs = {"id": identifier, "arn": f"arn:mock:{resource_type}/{identifier}"}
        for name in self.output_names.get(resource_type, []):
            outputs.setdefault(name, f"{identifier}.{name}")
        resource = _Resource(
            identifier=identifier,
            type=resource_type,
            alias=alias,
            attributes=dict(attributes),
            outputs=outputs,
        )
        self.resources[identifier] = resource
        logger.debug(f"Created {resource_type} {identifier}")
        return resource

    def _collision(self, resource_type: str, attributes: Dict[str, Any]) -> Optional[_Resource]:
        name = attributes.get("name")
        if name is None:
            return None
        for resource in self.resources.values():
            if resource.type == resource_type and resource.attributes.get("name") == name:
                return resource
        return None

    def _inject(self, operation: str, resource_type: str) -> None:
        key = (operation, resource_type)
        if key in self._fatal:
            raise FatalProviderError(f"{operation} {resource_type}: {self._fatal[key]}")
        if self._transient.get(key, 0) > 0:
            self._transient[key] -= 1
            raise TransientProviderError(f"{operation} {resource_type}: rate limited")

    def _get(self, identifier: str) -> _Resource:
        if identifier not in self.resources:
            raise ResourceNotFound(identifier)
        return self.resources[identifier]

    def _type_of(self, identifier: str) -> str:
        resource = self.resources.get(identifier)
        if resource is not None:
            return resource.type
        return identifier.rsplit("-", 1)[0]

    def _begin(self, operation: str, resource_type: str, identifier: Optional[str] = None) -> ProviderCall:
        call = ProviderCall(
            operation=operation,
            resource_type=resource_type,
            identifier=identifier,
            started=time.monotonic(),
            thread=threading.current_thread().name,
        )
        with self._lock:
            self.calls.append(call)
        if self.latency:
            time.sleep(self.latency)
        return call

    def _end(self, call: ProviderCall) -> None:
        call.finished = time.monotonic()
