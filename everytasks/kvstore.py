"""File-backed key-value namespace.

Each key lives in its own ``<key>.json`` file inside the namespace
directory, so one corrupt value never hides the others. Writes go through a
temp file + rename so a reader in another process sees either the
old value or the new one, never half of each.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore:
    """A directory of text values addressed by key."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def __repr__(self) -> str:
        return f"KeyValueStore({str(self.directory)!r})"

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"invalid key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        """Return the stored text, or None if the key was never written.

        Raises UnicodeDecodeError when the file is not valid UTF-8.
        """
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        """Atomic write: temp file + fsync + rename over the old value."""
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            p.stem for p in self.directory.glob("*.json") if not p.name.startswith(".")
        )

    def __contains__(self, key: str) -> bool:
        return self._path(key).exists()
