"""Style memory: persisted, user-approved prompt patterns."""

from .storage import FileStorage, InMemoryStorage, KeyValueStorage
from .style_memory import StyleMemory

__all__ = [
    "FileStorage",
    "InMemoryStorage",
    "KeyValueStorage",
    "StyleMemory",
]
