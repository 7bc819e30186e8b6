"""
Durable key-value storage used by the style memory.

Values are opaque strings; callers own serialization. Swap in
InMemoryStorage for tests or for sessions that should not persist.
"""

import os
from pathlib import Path
from typing import Dict, Optional


class KeyValueStorage:
    """Minimal persisted mapping from a string key to a string value."""

    def load(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key was never saved."""
        raise NotImplementedError

    def save(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStorage(KeyValueStorage):
    """Process-local storage. Nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def save(self, key: str, value: str) -> None:
        self.values[key] = value


class FileStorage(KeyValueStorage):
    """
    One UTF-8 file per key inside a directory.

    Writes go to a temporary sibling first and are swapped in with
    os.replace, so a crash mid-write leaves the previous value intact.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def save(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)
