from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from seedbank.core.config import DEFAULT_CONTEXT
from seedbank.core.errors import OrphanedEntryError, RegistryKeyNotFound, RegistryPreconditionError
from seedbank.core.observability.metrics import inc_registry

from .backends.base import RegistryBackend
from .backends.memory import MemoryRegistryBackend
from .models import RegistryEntry, identity_of, type_name_of

log = logging.getLogger("seedbank.registry")


def _require_key(key: Any) -> str:
    if not isinstance(key, str):
        raise RegistryPreconditionError(f"Registry key must be a string, got {type(key).__name__}")
    if not key.strip():
        raise RegistryPreconditionError("Registry key must not be empty")
    return key


class Registry:
    """
    Key -> object identity directory for seed data.

    Usage:
        registry.register("account.facility_1", account)
        registry.get("account.facility_1")
        registry.exists("account.facility_1")

    Registering an existing key replaces the previous entry (last write wins).
    """

    def __init__(self, backend: Optional[RegistryBackend] = None, *, default_context: str = DEFAULT_CONTEXT):
        self.backend = backend if backend is not None else MemoryRegistryBackend()
        self.default_context = default_context

    def register(
        self,
        key: str,
        obj: Any,
        description: Optional[str] = None,
        context: Optional[str] = None,
    ) -> Any:
        _require_key(key)
        ident = identity_of(obj)
        context = context or self.default_context

        existing = self.backend.fetch(key)
        if existing is not None:
            log.info(
                "Overwriting existing registry key '%s' (was %s#%s, now %s)",
                key,
                existing.object_type,
                existing.object_id,
                ident,
            )
            self.backend.delete(key)

        self.backend.put(RegistryEntry.for_object(key, obj, description=description, context=context), obj)
        inc_registry("register")
        log.info(
            "Registered: %s -> %s%s [%s]",
            key,
            ident,
            f" ({description})" if description else "",
            context,
        )
        return obj

    def get(self, key: str) -> Any:
        _require_key(key)
        entry = self.backend.fetch(key)
        if entry is None:
            raise RegistryKeyNotFound(key, self.all_keys())

        obj = self.backend.resolve(entry)
        if obj is None:
            self.backend.delete(key)
            inc_registry("orphan_removed")
            raise OrphanedEntryError(key, self.all_keys())
        return obj

    def exists(self, key: str) -> bool:
        if not isinstance(key, str):
            return False
        return self.backend.contains(key)

    def remove(self, key: str) -> bool:
        _require_key(key)
        removed = self.backend.delete(key)
        if removed:
            inc_registry("remove")
        return removed

    def all_keys(self) -> List[str]:
        return self.backend.keys()

    def clear(self) -> None:
        self.backend.clear()
        inc_registry("clear")
        log.info("Cleared all registry entries")

    def count(self) -> int:
        return self.backend.count()

    def clean_orphaned(self) -> int:
        """Remove every entry whose identity no longer resolves; returns how many."""
        orphaned = [e.key for e in self.backend.entries() if self.backend.resolve(e) is None]
        for key in orphaned:
            self.backend.delete(key)
        if orphaned:
            inc_registry("orphan_removed")
            log.info("Cleaned up %d orphaned registry entries", len(orphaned))
        return len(orphaned)

    # ------------------------------------------------------------
    # Browsing helpers
    # ------------------------------------------------------------
    def entries(self) -> List[RegistryEntry]:
        return self.backend.entries()

    def entry(self, key: str) -> Optional[RegistryEntry]:
        _require_key(key)
        return self.backend.fetch(key)

    def search(self, pattern: str) -> List[RegistryEntry]:
        needle = (pattern or "").lower()
        return [e for e in self.backend.entries() if needle in e.key.lower()]

    def entries_for_type(self, object_type: str) -> List[RegistryEntry]:
        return [e for e in self.backend.entries() if e.object_type == object_type]

    def object_exists(self, entry: RegistryEntry) -> bool:
        return self.backend.resolve(entry) is not None

    def preview(self, entry: RegistryEntry) -> str:
        obj = self.backend.resolve(entry)
        if obj is None:
            return "Orphaned"
        for attr in ("name", "title", "display_name"):
            value = getattr(obj, attr, None)
            if value:
                return str(value)
        return f"{type_name_of(obj)}#{getattr(obj, 'id', None)}"

    def stats(self, recent: int = 10) -> Dict[str, Any]:
        entries = self.backend.entries()
        by_type = Counter(e.object_type for e in entries)
        by_context = Counter(e.context or "" for e in entries)
        newest = sorted(entries, key=lambda e: (e.created_at or "", e.entry_id or 0), reverse=True)
        return {
            "total_entries": len(entries),
            "model_counts": sorted(by_type.items()),
            "context_counts": sorted(by_context.items()),
            "recent_entries": [e.to_dict() for e in newest[: max(0, recent)]],
        }

    # ------------------------------------------------------------
    # Transaction participation (read-only parses)
    # ------------------------------------------------------------
    def begin(self) -> None:
        self.backend.begin()

    def commit(self) -> None:
        self.backend.commit()

    def rollback(self) -> None:
        self.backend.rollback()
