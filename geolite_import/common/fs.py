"""Filesystem helpers."""

from __future__ import annotations

import json
import shutil
from pathlib import Path


def ensure_dir(path: Path) -> None:
    path.mkdir(mode=0o775, parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_json(path: Path, payload) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")


def remove_tree(path: Path) -> bool:
    """Delete a directory tree. Returns False when nothing was there to delete."""
    if not path.is_dir():
        return False
    shutil.rmtree(path, ignore_errors=True)
    return True
