"""Abstract provider interface consumed by the orchestrator."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ProviderStatus(str, Enum):
    """Readiness status reported by poll_status."""
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class ProviderResult(BaseModel):
    """Result of a successful create."""
    identifier: str = Field(..., description="Provider-assigned identifier")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Outputs known after create")


class ProviderResource(BaseModel):
    """Result of a successful read."""
    attributes: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)


class Provider(ABC):
    """
    Cloud provider operations, one call per resource.

    Implementations raise TransientProviderError for rate limiting and
    transient network failures, FatalProviderError for validation, permission
    or conflict errors, ResourceNotFound when an identifier is gone, and
    ResourceAlreadyExists (carrying the existing identifier) when a create
    collides with a resource of the same identity. The orchestrator may retry
    any call whose outcome is ambiguous, so every call must be safe to repeat.
    """
    
    @abstractmethod
    def create(self, resource_type: str, attributes: Dict[str, Any], alias: Optional[str] = None) -> ProviderResult:
        """Create a resource and return its identifier and outputs."""
        pass
    
    @abstractmethod
    def read(self, identifier: str) -> ProviderResource:
        """Read a resource's current attributes and outputs."""
        pass
    
    @abstractmethod
    def update(self, identifier: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply changed attributes in place and return the new outputs."""
        pass
    
    @abstractmethod
    def delete(self, identifier: str) -> None:
        """Delete a resource."""
        pass
    
    @abstractmethod
    def poll_status(self, identifier: str) -> ProviderStatus:
        """Report whether an asynchronously completing resource is ready."""
        pass
