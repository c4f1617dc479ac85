"""Pydantic model for the last-applied state of one resource."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StoredState(BaseModel):
    """Last-applied state of one resource instance, keyed by address."""
    address: str = Field(..., description="Resource address, e.g. 'aws_subnet.private[0]'")
    type: str = Field(..., description="Resource type")
    name: str = Field(..., description="Logical name")
    index: Optional[int] = Field(None, description="Instance index for counted resources")
    provider: Optional[str] = Field(None, description="Provider alias the resource was created with")
    identifier: Optional[str] = Field(None, description="Provider-assigned identifier")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Resolved attributes as applied")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Provider outputs")
    dependencies: List[str] = Field(default_factory=list, description="Addresses this resource depended on")
    ready: bool = Field(True, description="False while an asynchronous readiness condition is outstanding")
    deposed: List[str] = Field(default_factory=list, description="Identifiers of replaced objects that failed to delete")
    version: int = Field(0, ge=0, description="Store serial at the time of the last write")
    updated_at: datetime = Field(default_factory=utc_now)

    def output(self, name: str) -> Any:
        """Look up an output, falling back to attributes and the identifier."""
        if name in self.outputs:
            return self.outputs[name]
        if name == "id" and self.identifier is not None:
            return self.identifier
        return self.attributes.get(name)
