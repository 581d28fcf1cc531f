from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..models import ObjectLocator, RegistryEntry, has_identity
from .base import RegistryBackend


class MemoryRegistryBackend(RegistryBackend):
    """
    Process-local dict backend. Single writer only.

    With a ``locator`` an entry resolves through it; without one the object
    held at registration time is used and counts as orphaned once it loses
    its identity (``persisted`` turns False or ``id`` is cleared).
    """

    name = "memory"

    def __init__(self, locator: Optional[ObjectLocator] = None):
        self.locator = locator
        self._entries: Dict[str, RegistryEntry] = {}
        self._objects: Dict[str, Any] = {}
        self._savepoints: List[Tuple[Dict[str, RegistryEntry], Dict[str, Any]]] = []
        self._next_id = 1

    def put(self, entry: RegistryEntry, obj: Any) -> RegistryEntry:
        if entry.key in self._entries:
            raise KeyError(f"duplicate registry key: {entry.key}")
        stored = RegistryEntry(
            key=entry.key,
            object_type=entry.object_type,
            object_id=entry.object_id,
            description=entry.description,
            context=entry.context,
            created_at=entry.created_at,
            entry_id=self._next_id,
        )
        self._next_id += 1
        self._entries[entry.key] = stored
        self._objects[entry.key] = obj
        return stored

    def fetch(self, key: str) -> Optional[RegistryEntry]:
        return self._entries.get(key)

    def resolve(self, entry: RegistryEntry) -> Optional[Any]:
        if self.locator is not None:
            return self.locator.find(entry.object_type, entry.object_id)
        obj = self._objects.get(entry.key)
        if obj is None or not has_identity(obj):
            return None
        return obj

    def delete(self, key: str) -> bool:
        self._objects.pop(key, None)
        return self._entries.pop(key, None) is not None

    def entries(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def contains(self, key: str) -> bool:
        return key in self._entries

    def count(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._objects.clear()

    def begin(self) -> None:
        self._savepoints.append((dict(self._entries), dict(self._objects)))

    def commit(self) -> None:
        if self._savepoints:
            self._savepoints.pop()

    def rollback(self) -> None:
        if not self._savepoints:
            return
        entries, objects = self._savepoints.pop()
        self._entries = entries
        self._objects = objects
