from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from seedbank.core.registry.models import type_name_of

log = logging.getLogger("seedbank.store")

Rows = Dict[str, Dict[Any, Any]]
States = Dict[int, Tuple[Any, Dict[str, Any]]]


class MemoryObjectStore:
    """
    In-process identity map standing in for the application database.

    ``add`` assigns an integer ``id`` per type when the object has none.
    Doubles as the ``ObjectLocator`` used for orphan detection, and takes
    part in read-only parses through ``begin``/``commit``/``rollback``.
    """

    def __init__(self) -> None:
        self._rows: Rows = {}
        self._next_ids: Dict[str, int] = {}
        self._savepoints: List[Tuple[Rows, Dict[str, int], States]] = []

    def add(self, obj: Any) -> Any:
        type_name = type_name_of(obj)
        object_id = getattr(obj, "id", None)
        if object_id is None:
            object_id = self._next_ids.get(type_name, 1)
            setattr(obj, "id", object_id)
        if isinstance(object_id, int):
            self._next_ids[type_name] = max(self._next_ids.get(type_name, 1), object_id + 1)
        self._rows.setdefault(type_name, {})[object_id] = obj
        return obj

    def save(self, obj: Any) -> Any:
        return self.add(obj)

    def find(self, object_type: str, object_id: Any) -> Optional[Any]:
        return self._rows.get(object_type, {}).get(object_id)

    def delete(self, obj: Any) -> bool:
        rows = self._rows.get(type_name_of(obj), {})
        return rows.pop(getattr(obj, "id", None), None) is not None

    def all(self, object_type: str) -> List[Any]:
        return list(self._rows.get(object_type, {}).values())

    def count(self, object_type: Optional[str] = None) -> int:
        if object_type is not None:
            return len(self._rows.get(object_type, {}))
        return sum(len(rows) for rows in self._rows.values())

    def clear(self) -> None:
        self._rows.clear()
        self._next_ids.clear()

    def begin(self) -> None:
        rows = {t: dict(r) for t, r in self._rows.items()}
        # attribute state of every stored object, restored in place on rollback
        states: States = {
            id(obj): (obj, dict(vars(obj)))
            for r in self._rows.values()
            for obj in r.values()
            if hasattr(obj, "__dict__")
        }
        self._savepoints.append((rows, dict(self._next_ids), states))

    def commit(self) -> None:
        if self._savepoints:
            self._savepoints.pop()

    def rollback(self) -> None:
        if not self._savepoints:
            return
        rows, next_ids, states = self._savepoints.pop()
        for obj, state in states.values():
            vars(obj).clear()
            vars(obj).update(state)
        self._rows, self._next_ids = rows, next_ids
        log.debug("Object store rolled back (%d rows)", self.count())
