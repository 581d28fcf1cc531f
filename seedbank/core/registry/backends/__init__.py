from .base import RegistryBackend
from .memory import MemoryRegistryBackend
from .sqlite import SqliteRegistryBackend

BACKENDS = {
    "memory": MemoryRegistryBackend,
    "sqlite": SqliteRegistryBackend,
}

__all__ = ["BACKENDS", "MemoryRegistryBackend", "RegistryBackend", "SqliteRegistryBackend"]
