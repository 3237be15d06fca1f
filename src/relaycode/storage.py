"""File-backed persistence helpers.

Reads tolerate missing and corrupt files by returning the default, which is
what first-run behaviour relies on. Writes go through a temp file and an
atomic rename so concurrent readers never see a partial document.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def read_json(path: Path, default: Any = None) -> Any:
    """Load a JSON document, returning `default` if missing or malformed."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def write_text_atomic(path: Path, content: str) -> None:
    """Write text to `path` via a sibling temp file and rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_json(path: Path, data: Any) -> None:
    """Serialize `data` as indented JSON and write it atomically."""
    write_text_atomic(path, json.dumps(data, indent=2) + "\n")
