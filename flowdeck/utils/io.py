# flowdeck/utils/io.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

import yaml

PathLike = Union[str, Path]

WORKFLOW_SUFFIXES = (".json", ".yaml", ".yml")


def to_path(p: PathLike) -> Path:
    return p if isinstance(p, Path) else Path(p)


def ensure_dir(p: PathLike) -> Path:
    """Ensure a directory exists and return it."""
    d = to_path(p)
    d.mkdir(parents=True, exist_ok=True)
    return d


def write_text(path: PathLike, text: str, encoding: str = "utf-8") -> Path:
    """Write text atomically (via temp file then replace), creating parent dirs."""
    p = to_path(path)
    ensure_dir(p.parent)
    tmp = p.with_suffix(p.suffix + ".tmp")
    tmp.write_text(text, encoding=encoding)
    tmp.replace(p)
    return p


def dump_json(data: Any, indent: int = 2) -> str:
    return json.dumps(data, ensure_ascii=False, indent=indent)


def dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def read_yaml(path: PathLike) -> Any:
    """Parse a YAML file; syntax errors surface as ValueError like JSON ones do."""
    with to_path(path).open("r", encoding="utf-8") as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e


def load_any(path: PathLike) -> Any:
    """
    Load a workflow document by extension:
      - .json -> JSON
      - .yaml/.yml -> YAML
    Malformed content and unknown extensions raise ValueError.
    """
    p = to_path(path)
    suf = p.suffix.lower()
    if suf == ".json":
        with p.open("r", encoding="utf-8") as f:
            return json.load(f)
    if suf in (".yaml", ".yml"):
        return read_yaml(p)
    raise ValueError(f"Unsupported extension: {suf} for {p} (expected one of {', '.join(WORKFLOW_SUFFIXES)})")


def save_any(path: PathLike, data: Any) -> Path:
    """Write data by extension (.yaml/.yml -> YAML, anything else -> pretty JSON)."""
    p = to_path(path)
    if p.suffix.lower() in (".yaml", ".yml"):
        return write_text(p, dump_yaml(data))
    return write_text(p, dump_json(data) + "\n")


def write_files(root: PathLike, files: Dict[str, str]) -> list:
    """Write a {relative path: content} bundle under root; returns the written paths."""
    base = ensure_dir(root)
    return [write_text(base / rel, content) for rel, content in files.items()]
