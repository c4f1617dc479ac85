"""Load resource declarations from YAML or JSON files."""

import json
from pathlib import Path
from typing import Any, Dict, List
import yaml
from pydantic import ValidationError
from ..model.models import ResourceDeclaration
from ..utils.errors import DeclarationLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.loader")

JSON_SUFFIXES = {".json"}


def load_declarations(path: str) -> List[ResourceDeclaration]:
    """
    Load declarations from a file with a top-level ``resources`` list.

    Files ending in ``.json`` are parsed as JSON, everything else as YAML.

    Args:
        path: Path to the declaration file

    Returns:
        Declarations in file order

    Raises:
        DeclarationLoadError: If the file is missing, unparsable or an entry is invalid
    """
    file_path = Path(path)

    if not file_path.exists():
        raise DeclarationLoadError(
            f"Declaration file not found: {path}. "
            "Please check the file path and ensure the file exists."
        )

    if not file_path.is_file():
        raise DeclarationLoadError(f"Path is not a file: {path}.")

    data = _parse(file_path)

    if data is None:
        logger.warning(f"Declaration file {path} is empty")
        return []

    if not isinstance(data, dict) or "resources" not in data:
        raise DeclarationLoadError(
            f"Invalid declaration file {path}: expected a mapping with a top-level 'resources' list"
        )

    entries = data["resources"] or []
    if not isinstance(entries, list):
        raise DeclarationLoadError(f"Invalid declaration file {path}: 'resources' must be a list")

    declarations = []
    for idx, entry in enumerate(entries):
        declarations.append(_declaration(entry, idx, path))

    logger.info(f"Loaded {len(declarations)} declarations from {path}")
    return declarations


def _parse(file_path: Path) -> Any:
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            if file_path.suffix.lower() in JSON_SUFFIXES:
                return json.load(f)
            return yaml.safe_load(f)
    except json.JSONDecodeError as e:
        raise DeclarationLoadError(f"Invalid JSON in declaration file {file_path}: {e}")
    except yaml.YAMLError as e:
        raise DeclarationLoadError(f"Invalid YAML in declaration file {file_path}: {e}")
    except OSError as e:
        raise DeclarationLoadError(f"Error reading declaration file {file_path}: {e}")


def _declaration(entry: Any, idx: int, path: str) -> ResourceDeclaration:
    if not isinstance(entry, dict):
        raise DeclarationLoadError(f"Resource entry {idx} in {path} must be a mapping")
    try:
        return ResourceDeclaration(**entry)
    except ValidationError as e:
        label = _label(entry, idx)
        raise DeclarationLoadError(f"Invalid resource {label} in {path}: {e}")


def _label(entry: Dict[str, Any], idx: int) -> str:
    if "type" in entry and "name" in entry:
        return f"{entry['type']}.{entry['name']}"
    return f"at index {idx}"
