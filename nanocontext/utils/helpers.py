"""Filesystem helpers shared by the persistence layer."""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write *content* to *path* via a sibling temp file and ``os.replace``.

    Readers never observe a half-written file; on failure the temp file is removed
    and the previous content stays in place.
    """
    ensure_dir(path.parent)
    tmp = path.parent / f".{path.name}.tmp-{uuid.uuid4().hex[:8]}"
    try:
        with open(tmp, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


def atomic_write_json(path: Path, data: Any) -> None:
    """Serialize *data* as indented JSON and write it atomically."""
    atomic_write_text(path, json.dumps(data, ensure_ascii=False, indent=2) + "\n")


def read_json(path: Path) -> Any:
    """Load JSON from *path*. Raises ``OSError`` / ``ValueError`` like ``json.loads``."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)
