"""Storage components: checkpoint store and saved-session files."""

from .resilience_store import ResilienceStore, FileResilienceStore, MemoryResilienceStore
from .file_manager import FileManager

__all__ = [
    "ResilienceStore",
    "FileResilienceStore",
    "MemoryResilienceStore",
    "FileManager",
]
