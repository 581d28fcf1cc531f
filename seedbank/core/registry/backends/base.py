from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ..models import RegistryEntry


class RegistryBackend(ABC):
    """
    Storage for registry entries.

    Every backend must give the same answers for the same sequence of calls,
    including orphan detection: ``resolve`` returns None once the identity an
    entry points at no longer exists.

    ``begin``/``commit``/``rollback`` nest; a rollback discards every write
    since the matching ``begin``.
    """

    name: str

    @abstractmethod
    def put(self, entry: RegistryEntry, obj: Any) -> RegistryEntry:
        """Insert ``entry``; the key must not already exist."""

    @abstractmethod
    def fetch(self, key: str) -> Optional[RegistryEntry]:
        ...

    @abstractmethod
    def resolve(self, entry: RegistryEntry) -> Optional[Any]:
        """Live object for ``entry`` or None when orphaned."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def entries(self) -> List[RegistryEntry]:
        """All entries in insertion order."""

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def begin(self) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...

    def contains(self, key: str) -> bool:
        return self.fetch(key) is not None

    def keys(self) -> List[str]:
        return [e.key for e in self.entries()]

    def count(self) -> int:
        return len(self.entries())
