"""Filesystem helpers."""

from __future__ import annotations

import json
from pathlib import Path


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_json(path: Path, payload, *, sort_keys: bool = True) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=sort_keys)
        f.write("\n")


def write_json_compact(path: Path, payload) -> int:
    """Write ``payload`` without whitespace and return the number of bytes written."""
    ensure_dir(path.parent)
    text = json.dumps(payload, separators=(",", ":"))
    data = text.encode("utf-8")
    path.write_bytes(data)
    return len(data)


def list_files(path: Path) -> list[Path]:
    if not path.exists():
        return []
    return sorted(p for p in path.iterdir() if p.is_file())
