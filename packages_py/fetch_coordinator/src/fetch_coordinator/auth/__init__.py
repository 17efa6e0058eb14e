from .token_store import FileTokenStore, MemoryTokenStore

__all__ = [
    "FileTokenStore",
    "MemoryTokenStore",
]
