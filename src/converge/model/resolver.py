"""Expand declarations into resource nodes and discover cross-resource references."""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from pydantic import ValidationError
from .expressions import INTERPOLATION, parse_reference, substitute_count_index, uses_count_index
from .models import (
    Ref,
    Reference,
    ResolvedDeclarations,
    ResourceDeclaration,
    ResourceIdentity,
    ResourceNode,
    SplatRef,
    Template,
)
from .schema import TypeRegistry
from ..utils.errors import DeclarationError, DuplicateIdentity, InvalidCount, InvalidOutput, UnresolvedReference
from ..utils.logging import get_logger

logger = get_logger("model.resolver")

DEPENDS_ON_ADDRESS = re.compile(r"^(?P<base>[A-Za-z][\w-]*\.[A-Za-z_][\w-]*)(?:\[(?P<index>\d+)\])?$")


def coerce_declarations(declarations: Sequence[Union[ResourceDeclaration, Mapping[str, Any]]]) -> List[ResourceDeclaration]:
    """Accept declaration models or plain dicts."""
    result = []
    for idx, declaration in enumerate(declarations):
        if isinstance(declaration, ResourceDeclaration):
            result.append(declaration)
            continue
        try:
            result.append(ResourceDeclaration(**declaration))
        except ValidationError as e:
            raise DeclarationError(f"Invalid declaration at index {idx}: {e}")
    return result


def parse_count(declaration: ResourceDeclaration) -> Optional[int]:
    """Return the instance count, or None for an uncounted resource."""
    raw = declaration.count
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise InvalidCount(f"count for {declaration.type}.{declaration.name} must be an integer, got {raw!r}")
    if isinstance(raw, str):
        if not raw.strip().isdigit():
            raise InvalidCount(
                f"count for {declaration.type}.{declaration.name} must be a non-negative integer, got {raw!r}"
            )
        raw = int(raw.strip())
    if raw < 0:
        raise InvalidCount(f"count for {declaration.type}.{declaration.name} must not be negative, got {raw}")
    return raw


class _Declared:
    """Index of declared resources used while resolving references."""

    def __init__(self):
        self.counts: Dict[str, Optional[int]] = {}
        self.declarations: Dict[str, ResourceDeclaration] = {}

    def add(self, declaration: ResourceDeclaration, count: Optional[int]) -> None:
        base = f"{declaration.type}.{declaration.name}"
        self.counts[base] = count
        self.declarations[base] = declaration

    def instances(self, base: str) -> List[str]:
        count = self.counts[base]
        if count is None:
            return [base]
        return [f"{base}[{i}]" for i in range(count)]


class ReferenceResolver:
    """
    Turn a declaration set into a flat node set plus reference edges.

    The transformation is pure: no provider or state store is consulted.
    """

    def __init__(self, registry: Optional[TypeRegistry] = None):
        self.registry = registry or TypeRegistry()

    def resolve(self, declarations: Sequence[Union[ResourceDeclaration, Mapping[str, Any]]]) -> ResolvedDeclarations:
        decls = coerce_declarations(declarations)
        declared = _Declared()
        identities: List[Tuple[ResourceDeclaration, ResourceIdentity]] = []
        seen = set()

        for declaration in decls:
            count = parse_count(declaration)
            base = f"{declaration.type}.{declaration.name}"
            if base in declared.counts:
                raise DuplicateIdentity(base)
            declared.add(declaration, count)
            indices = [None] if count is None else list(range(count))
            for index in indices:
                identity = ResourceIdentity(
                    type=declaration.type,
                    name=declaration.name,
                    provider=declaration.provider,
                    index=index,
                )
                if identity.address in seen:
                    raise DuplicateIdentity(identity.address)
                seen.add(identity.address)
                identities.append((declaration, identity))

        nodes: List[ResourceNode] = []
        references: List[Reference] = []
        for rank, (declaration, identity) in enumerate(identities):
            attributes = declaration.attributes
            if identity.index is not None:
                attributes = substitute_count_index(attributes, identity.index)
            elif uses_count_index(attributes):
                raise UnresolvedReference(
                    identity.address, "count.index", "count.index is only valid on counted resources"
                )

            node_refs: List[Reference] = []
            resolved_attrs = {
                key: self._convert(value, identity.address, key, declared, node_refs)
                for key, value in attributes.items()
            }
            hints = self._resolve_depends_on(identity.address, declaration.depends_on, declared)

            nodes.append(ResourceNode(
                identity=identity,
                attributes=resolved_attrs,
                depends_on=hints,
                lifecycle=declaration.lifecycle,
                rank=rank,
            ))
            references.extend(node_refs)

        logger.info(
            f"Resolved {len(decls)} declarations into {len(nodes)} nodes and {len(references)} references"
        )
        return ResolvedDeclarations(nodes=nodes, references=references)

    def _convert(self, value: Any, source: str, path: str, declared: _Declared, refs: List[Reference]) -> Any:
        """Replace reference expressions in value with lazy placeholders."""
        if isinstance(value, dict):
            return {
                k: self._convert(v, source, f"{path}.{k}", declared, refs)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [
                self._convert(v, source, f"{path}[{i}]", declared, refs)
                for i, v in enumerate(value)
            ]
        if not isinstance(value, str):
            return value

        matches = list(INTERPOLATION.finditer(value))
        placeholders: Dict[str, Union[Ref, SplatRef]] = {}
        for match in matches:
            expression = match.group(1).strip()
            placeholder = self._placeholder(expression, source, declared)
            if placeholder is None:
                continue
            placeholders[expression] = placeholder
            targets = placeholder.targets if isinstance(placeholder, SplatRef) else [placeholder.target]
            for target in targets:
                refs.append(Reference(source=source, attribute_path=path, target=target, output=placeholder.output))

        if not placeholders:
            return value
        if len(matches) == 1 and value.strip() == matches[0].group(0):
            return next(iter(placeholders.values()))
        return Template(text=value, refs=placeholders)

    def _placeholder(self, expression: str, source: str, declared: _Declared) -> Optional[Union[Ref, SplatRef]]:
        parsed = parse_reference(expression)
        if parsed is None:
            logger.debug(f"Keeping non-reference expression literal in {source}: {expression}")
            return None
        resource_type, name, index, output = parsed
        base = f"{resource_type}.{name}"

        if base not in declared.counts:
            raise UnresolvedReference(source, expression)

        target_decl = declared.declarations[base]
        valid = self.registry.valid_outputs(resource_type, target_decl.attributes.keys())
        if output not in valid:
            raise InvalidOutput(source, base, output)

        count = declared.counts[base]
        if index == "*":
            if count is None:
                raise UnresolvedReference(source, expression, f"{base} is not a counted resource")
            return SplatRef(targets=declared.instances(base), output=output, expression=expression)
        if count is None:
            if index is not None:
                raise UnresolvedReference(source, expression, f"{base} is not a counted resource")
            return Ref(target=base, output=output, expression=expression)
        if index is None:
            raise UnresolvedReference(source, expression, f"{base} has count = {count}; an index is required")
        if index >= count:
            raise UnresolvedReference(source, expression, f"index {index} is out of range for count = {count}")
        return Ref(target=f"{base}[{index}]", output=output, expression=expression)

    def _resolve_depends_on(self, source: str, hints: List[str], declared: _Declared) -> List[str]:
        addresses: List[str] = []
        for hint in hints:
            match = DEPENDS_ON_ADDRESS.match(hint.strip())
            if not match or match.group("base") not in declared.counts:
                raise UnresolvedReference(source, hint)
            base = match.group("base")
            if match.group("index") is None:
                targets = declared.instances(base)
            else:
                index = int(match.group("index"))
                count = declared.counts[base]
                if count is None or index >= count:
                    raise UnresolvedReference(source, hint, "index does not name a declared instance")
                targets = [f"{base}[{index}]"]
            for target in targets:
                if target not in addresses:
                    addresses.append(target)
        return addresses


def resolve_declarations(
    declarations: Sequence[Union[ResourceDeclaration, Mapping[str, Any]]],
    registry: Optional[TypeRegistry] = None,
) -> ResolvedDeclarations:
    """Convenience wrapper around ReferenceResolver.resolve."""
    return ReferenceResolver(registry).resolve(declarations)
