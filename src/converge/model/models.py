"""Pydantic models for declared resources, nodes and references."""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


class Lifecycle(BaseModel):
    """Per-resource lifecycle overrides."""
    create_before_destroy: Optional[bool] = Field(
        None, description="Replacement ordering override; falls back to the resource type default"
    )
    ignore_changes: List[str] = Field(
        default_factory=list, description="Top-level attributes excluded from diffing"
    )


class ResourceDeclaration(BaseModel):
    """A declared resource as written by the user, before count expansion."""
    type: str = Field(..., description="Resource type, e.g. 'aws_vpc'")
    name: str = Field(..., description="Logical name, unique per type")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Raw attribute map")
    count: Optional[Union[int, str]] = Field(None, description="Cardinality expression")
    depends_on: List[str] = Field(default_factory=list, description="Explicit ordering hints")
    provider: Optional[str] = Field(None, description="Provider alias binding")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)


class ResourceIdentity(BaseModel):
    """Identity of one resource instance: (type, name, provider alias, index)."""
    type: str
    name: str
    provider: Optional[str] = None
    index: Optional[int] = None

    class Config:
        frozen = True

    @property
    def base_address(self) -> str:
        return f"{self.type}.{self.name}"

    @property
    def address(self) -> str:
        if self.index is None:
            return self.base_address
        return f"{self.base_address}[{self.index}]"

    def __str__(self) -> str:
        return self.address


class Ref(BaseModel):
    """Lazy placeholder for one output of one node."""
    kind: str = "ref"
    target: str = Field(..., description="Address of the referenced node")
    output: str = Field(..., description="Output name on the referenced node")
    expression: str = Field(..., description="Expression as written")


class SplatRef(BaseModel):
    """Lazy placeholder for one output across every instance of a counted resource."""
    kind: str = "splat"
    targets: List[str] = Field(default_factory=list)
    output: str
    expression: str


class Template(BaseModel):
    """String with embedded references, interpolated once every reference is known."""
    kind: str = "template"
    text: str
    refs: Dict[str, Union[Ref, SplatRef]] = Field(default_factory=dict)


class Reference(BaseModel):
    """A resolved cross-resource reference: source attribute -> target output."""
    source: str
    attribute_path: str
    target: str
    output: str

    class Config:
        frozen = True


class ResourceNode(BaseModel):
    """In-memory representation of one resource instance."""
    identity: ResourceIdentity
    attributes: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list, description="Addresses from ordering hints")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    rank: int = Field(0, description="Declaration order, used to break ordering ties")

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def type(self) -> str:
        return self.identity.type


class ResolvedDeclarations(BaseModel):
    """Flat node set and reference list produced from a declaration set."""
    nodes: List[ResourceNode] = Field(default_factory=list)
    references: List[Reference] = Field(default_factory=list)

    def get(self, address: str) -> Optional[ResourceNode]:
        for node in self.nodes:
            if node.address == address:
                return node
        return None

    def addresses(self) -> List[str]:
        return [node.address for node in self.nodes]
