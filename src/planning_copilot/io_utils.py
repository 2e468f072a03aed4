"""File locking and YAML helpers shared by the file-backed stores."""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from typing import Any, Optional, TextIO

import yaml


class FileLock:
    """Advisory ``flock`` lock on a sidecar lock file.

    The lock is re-entrant per instance so a repository method can call
    another locked method while already holding it. Callers serialize
    threads with their own ``RLock`` before entering.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._handle: Optional[TextIO] = None
        self._depth = 0

    def __enter__(self) -> "FileLock":
        if self._depth > 0:
            self._depth += 1
            return self
        self._path.parent.mkdir(parents=True, exist_ok=True)
        handle = self._path.open("a+", encoding="utf-8")
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        self._handle = handle
        self._depth = 1
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self._depth -= 1
        if self._depth > 0:
            return
        handle = self._handle
        self._handle = None
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()


def _load_data(path: Path, default: Any) -> Any:
    """Read a YAML document, returning ``default`` when missing or empty."""
    if not path.exists():
        return default
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    return default if raw is None else raw


def _save_data(path: Path, data: Any) -> None:
    """Write a YAML document atomically via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)
