"""Resource type schemas: exposed outputs, replacement triggers, readiness."""

from typing import Dict, Iterable, List, Optional, Set
from pydantic import BaseModel, Field


class ResourceTypeSchema(BaseModel):
    """Provider-specific behaviour of one resource type."""
    outputs: List[str] = Field(default_factory=lambda: ["id"], description="Outputs exposed after create")
    force_new: List[str] = Field(default_factory=list, description="Attributes whose change requires replacement")
    create_before_destroy: bool = Field(True, description="Default replacement ordering")
    await_ready: bool = Field(False, description="Creation completes asynchronously")
    readiness_timeout: Optional[float] = Field(None, gt=0, description="Overrides readiness.timeout")
    readiness_poll_interval: Optional[float] = Field(None, gt=0, description="Overrides readiness.poll_interval")


class TypeRegistry:
    """Lookup of resource type schemas with a permissive default."""

    def __init__(self, schemas: Optional[Dict[str, ResourceTypeSchema]] = None):
        self._schemas: Dict[str, ResourceTypeSchema] = dict(schemas or {})
        self._default = ResourceTypeSchema()

    def get(self, resource_type: str) -> ResourceTypeSchema:
        return self._schemas.get(resource_type, self._default)

    def valid_outputs(self, resource_type: str, attribute_names: Iterable[str] = ()) -> Set[str]:
        """Outputs a reference may name: schema outputs, 'id', and declared attributes."""
        schema = self.get(resource_type)
        return set(schema.outputs) | {"id"} | set(attribute_names)

    def create_before_destroy(self, resource_type: str, override: Optional[bool] = None) -> bool:
        if override is not None:
            return override
        return self.get(resource_type).create_before_destroy
