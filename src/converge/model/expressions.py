"""Reference expressions inside attribute values.

Only the reference form ``${type.name[.index].output}`` is understood; any
other ``${...}`` expression is kept as literal text.
"""

import re
from typing import Any, Callable, Iterator, Optional, Tuple, Union
from .models import Ref, SplatRef, Template

INTERPOLATION = re.compile(r"\$\{([^}]+)\}")

REFERENCE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)\.(?P<name>[A-Za-z_][\w-]*)"
    r"(?:\[(?P<index>\d+|\*)\]|\.(?P<dotindex>\d+))?"
    r"\.(?P<output>[A-Za-z_][\w-]*)$"
)

COUNT_INDEX = re.compile(r"\bcount\.index\b")


class _Unknown:
    """Value that will only be known after apply."""
    
    _instance = None
    
    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    def __repr__(self) -> str:
        return "(known after apply)"
    
    def __bool__(self) -> bool:
        return False


UNKNOWN = _Unknown()


def parse_reference(expression: str) -> Optional[Tuple[str, str, Optional[Union[int, str]], str]]:
    """
    Parse a reference expression.
    
    Returns:
        (type, name, index, output) where index is an int, '*' or None;
        None when the expression is not a resource reference
    """
    match = REFERENCE.match(expression.strip())
    if not match:
        return None
    raw_index = match.group("index") or match.group("dotindex")
    index: Optional[Union[int, str]] = None
    if raw_index == "*":
        index = "*"
    elif raw_index is not None:
        index = int(raw_index)
    return match.group("type"), match.group("name"), index, match.group("output")


def uses_count_index(value: Any) -> bool:
    """Return True if any interpolation in value mentions count.index."""
    return any(COUNT_INDEX.search(expr) for _, expr in iter_expressions(value))


def substitute_count_index(value: Any, index: int) -> Any:
    """Replace count.index inside interpolations with the instance index."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped == "${count.index}":
            return index
        return INTERPOLATION.sub(
            lambda m: str(index) if m.group(1).strip() == "count.index"
            else "${" + COUNT_INDEX.sub(str(index), m.group(1)) + "}",
            value,
        )
    if isinstance(value, dict):
        return {k: substitute_count_index(v, index) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_count_index(v, index) for v in value]
    return value


def iter_expressions(value: Any, path: str = "") -> Iterator[Tuple[str, str]]:
    """Yield (attribute_path, expression) for every interpolation in value."""
    if isinstance(value, str):
        for match in INTERPOLATION.finditer(value):
            yield path, match.group(1).strip()
    elif isinstance(value, dict):
        for key, item in value.items():
            child = f"{path}.{key}" if path else str(key)
            yield from iter_expressions(item, child)
    elif isinstance(value, list):
        for i, item in enumerate(value):
            yield from iter_expressions(item, f"{path}[{i}]")


def iter_placeholders(value: Any, path: str = "") -> Iterator[Tuple[str, Union[Ref, SplatRef]]]:
    """Yield (attribute_path, placeholder) for every lazy reference in value."""
    if isinstance(value, (Ref, SplatRef)):
        yield path, value
    elif isinstance(value, Template):
        for ref in value.refs.values():
            yield path, ref
    elif isinstance(value, dict):
        for key, item in value.items():
            child = f"{path}.{key}" if path else str(key)
            yield from iter_placeholders(item, child)
    elif isinstance(value, list):
        for i, item in enumerate(value):
            yield from iter_placeholders(item, f"{path}[{i}]")


def resolve_value(value: Any, lookup: Callable[[str, str], Any]) -> Any:
    """
    Replace placeholders in value with concrete values.
    
    Args:
        value: Attribute value, possibly containing placeholders
        lookup: Callable (address, output) -> value or UNKNOWN
    
    Returns:
        Concrete value; UNKNOWN if any referenced output is not yet known
        (containers hold UNKNOWN in place rather than collapsing)
    """
    if isinstance(value, Ref):
        return lookup(value.target, value.output)
    if isinstance(value, SplatRef):
        items = [lookup(target, value.output) for target in value.targets]
        if any(item is UNKNOWN for item in items):
            return UNKNOWN
        return items
    if isinstance(value, Template):
        resolved = {expr: resolve_value(ref, lookup) for expr, ref in value.refs.items()}
        if any(item is UNKNOWN for item in resolved.values()):
            return UNKNOWN
        return INTERPOLATION.sub(
            lambda m: _stringify(resolved[m.group(1).strip()]) if m.group(1).strip() in resolved else m.group(0),
            value.text,
        )
    if isinstance(value, dict):
        return {k: resolve_value(v, lookup) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, lookup) for v in value]
    return value


def contains_unknown(value: Any) -> bool:
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, list):
        return any(contains_unknown(v) for v in value)
    return False


def _stringify(value: Any) -> str:
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)
