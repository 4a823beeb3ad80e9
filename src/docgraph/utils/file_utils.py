"""File operation utilities for graph and report output."""

import json
from pathlib import Path
from typing import Any, List, Union


def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure directory exists, create if not."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_json_dump(data: Any, filepath: Union[str, Path], indent: int = 2) -> bool:
    """
    Dump JSON to a file through a temporary file so readers never see a
    half-written graph.

    Args:
        data: Data to serialize
        filepath: Target file path
        indent: JSON indentation

    Returns:
        True on success; the exception is re-raised otherwise
    """
    filepath = Path(filepath)
    temp_path = filepath.with_suffix(filepath.suffix + '.tmp')

    try:
        ensure_dir(filepath.parent)
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=indent)
        temp_path.replace(filepath)
        return True
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def safe_json_load(filepath: Union[str, Path], default: Any = None) -> Any:
    """
    Load JSON from file, returning ``default`` when it is missing or invalid.
    """
    filepath = Path(filepath)

    if not filepath.exists():
        return default

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError):
        return default


def list_parsed_documents(directory: Union[str, Path]) -> List[Path]:
    """List parsed-document JSON files in a directory, sorted by name."""
    directory = Path(directory)
    return sorted(p for p in directory.glob("*.json") if p.is_file())
