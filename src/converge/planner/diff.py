"""Attribute diffing between desired and stored state."""

from typing import Any, Dict, Iterable, List
from .models import AttributeChange
from ..model.expressions import contains_unknown


def diff_attributes(
    desired: Dict[str, Any],
    stored: Dict[str, Any],
    force_new: Iterable[str] = (),
    ignore: Iterable[str] = (),
) -> List[AttributeChange]:
    """
    Compare top-level attributes.
    
    Args:
        desired: Resolved desired attributes, possibly holding UNKNOWN
        stored: Attributes recorded at the last apply
        force_new: Attributes whose change requires replacement
        ignore: Attributes excluded from the comparison
        
    Returns:
        Changes sorted by attribute name
    """
    force_new = set(force_new)
    ignore = set(ignore)
    changes = []
    for key in sorted(set(desired) | set(stored)):
        if key in ignore:
            continue
        after = desired.get(key)
        before = stored.get(key)
        unknown = contains_unknown(after)
        if not unknown and after == before:
            continue
        changes.append(AttributeChange(
            path=key,
            before=before,
            after=None if unknown else after,
            known=not unknown,
            forces_replacement=key in force_new,
        ))
    return changes


def creation_changes(desired: Dict[str, Any]) -> List[AttributeChange]:
    """Every desired attribute as a change from nothing."""
    changes = []
    for key in sorted(desired):
        value = desired[key]
        unknown = contains_unknown(value)
        changes.append(AttributeChange(path=key, before=None, after=None if unknown else value, known=not unknown))
    return changes

