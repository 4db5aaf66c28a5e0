"""File helpers shared by the cache and the CLI output path."""

from __future__ import annotations

import contextlib
import json
import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Any

_WINDOWS_RETRY_COUNT = 5
_WINDOWS_RETRY_DELAY = 0.05  # 50ms


def _replace(src: str, dst: Path) -> None:
    """os.replace with a short retry loop for Windows file locking."""
    if sys.platform != "win32":
        os.replace(src, dst)
        return

    last_error: OSError | None = None
    for attempt in range(_WINDOWS_RETRY_COUNT):
        try:
            os.replace(src, dst)
            return
        except PermissionError as e:
            last_error = e
            time.sleep(_WINDOWS_RETRY_DELAY * (attempt + 1))
    if last_error:
        raise last_error


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write text to a file via a sibling temp file and an atomic rename.

    Readers never observe a partially written file.

    Args:
        path: Target file path
        content: Text content to write
        encoding: Text encoding (default: utf-8)
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(suffix=".tmp", prefix=f".{path.name}.", dir=parent)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
        _replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: Path, obj: Any) -> None:
    """Serialize ``obj`` as JSON and write it atomically."""
    atomic_write_text(path, json.dumps(obj, ensure_ascii=False))
