from .interface import FrozenNodeStore
from .memory_store import MemoryFrozenNodeStore

__all__ = ["FrozenNodeStore", "MemoryFrozenNodeStore"]
