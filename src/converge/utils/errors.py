"""Custom exception classes for converge.

Declaration and graph errors are whole-run fatal and are raised before any
provider call. State, provider and readiness errors are node-local during
``apply``: the executor turns them into failed execution records.
"""

from typing import List, Optional


class ConvergeError(Exception):
    """Base exception for all converge errors."""
    pass


class ConfigError(ConvergeError):
    """Raised when configuration is invalid or missing."""
    pass


class DeclarationLoadError(ConvergeError):
    """Raised when a declaration file cannot be read or parsed."""
    pass


class DeclarationError(ConvergeError):
    """Raised when declared resources cannot be turned into a graph."""
    pass


class DuplicateIdentity(DeclarationError):
    """Raised when two declarations expand to the same (type, name, index)."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Duplicate resource identity: {address}")


class UnresolvedReference(DeclarationError):
    """Raised when an attribute refers to a resource that is not declared."""

    def __init__(self, source: str, expression: str, reason: str = "resource is not declared"):
        self.source = source
        self.expression = expression
        super().__init__(f"Unresolved reference '{expression}' in {source}: {reason}")


class InvalidOutput(DeclarationError):
    """Raised when a reference names an output the target type does not expose."""

    def __init__(self, source: str, target: str, output: str):
        self.source = source
        self.target = target
        self.output = output
        super().__init__(f"{source} references unknown output '{output}' of {target}")


class InvalidCount(DeclarationError):
    """Raised when a count expression is not a non-negative integer."""
    pass


class GraphError(ConvergeError):
    """Raised when the dependency graph cannot be ordered or mutated."""
    pass


class CycleDetected(GraphError):
    """Raised when declared dependencies form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle + cycle[:1])}")


class DependentsExist(GraphError):
    """Raised when a resource is destroyed while live resources still depend on it."""

    def __init__(self, address: str, dependents: List[str]):
        self.address = address
        self.dependents = dependents
        super().__init__(
            f"Cannot destroy {address}: still required by {', '.join(dependents)}"
        )


class StateError(ConvergeError):
    """Raised for state store failures."""
    pass


class StateConflict(StateError):
    """Raised when a stored entry changed since the plan was computed."""

    def __init__(self, address: str, expected: Optional[int], actual: Optional[int]):
        self.address = address
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"State conflict for {address}: expected version {expected}, found {actual}"
        )


class StateLocked(StateError):
    """Raised when the state store is locked by another run."""

    def __init__(self, holder: str, requested: str):
        self.holder = holder
        self.requested = requested
        super().__init__(f"State is locked by run {holder} (requested by {requested})")


class ProviderError(ConvergeError):
    """Base class for errors reported by a provider."""
    pass


class TransientProviderError(ProviderError):
    """Rate limiting, throttling or a transient network failure. Safe to retry."""
    pass


class FatalProviderError(ProviderError):
    """Validation failure, permission denied, conflicting resource. Never retried."""
    pass


class ResourceNotFound(ProviderError):
    """Raised by the provider when an identifier does not exist."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Resource not found: {identifier}")


class ResourceAlreadyExists(ProviderError):
    """Raised by the provider when a create collides with an existing resource."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Resource already exists: {identifier}")


class ReadinessError(ConvergeError):
    """Raised when a resource never became ready."""
    pass


class ReadinessTimeout(ReadinessError):
    """The readiness condition did not hold before the timeout."""
    pass


class ReadinessCancelled(ReadinessError):
    """The readiness wait was cancelled by the run."""
    pass


class ReadinessFailed(ReadinessError):
    """The provider reported the resource failed while it was being awaited."""
    pass
