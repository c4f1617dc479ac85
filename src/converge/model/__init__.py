"""Resource model: declarations, nodes, references and type schemas."""

from .models import (
    Lifecycle,
    Ref,
    Reference,
    ResolvedDeclarations,
    ResourceDeclaration,
    ResourceIdentity,
    ResourceNode,
    SplatRef,
    Template,
)
from .schema import ResourceTypeSchema, TypeRegistry
from .expressions import UNKNOWN, resolve_value
from .resolver import ReferenceResolver, resolve_declarations

__all__ = [
    "Lifecycle",
    "Ref",
    "Reference",
    "ResolvedDeclarations",
    "ResourceDeclaration",
    "ResourceIdentity",
    "ResourceNode",
    "SplatRef",
    "Template",
    "ResourceTypeSchema",
    "TypeRegistry",
    "UNKNOWN",
    "resolve_value",
    "ReferenceResolver",
    "resolve_declarations",
]
