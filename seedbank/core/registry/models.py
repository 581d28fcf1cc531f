from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from seedbank.core.errors import RegistryPreconditionError


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def type_name_of(obj: Any) -> str:
    return getattr(type(obj), "__seed_type__", None) or type(obj).__name__


@dataclass(frozen=True)
class ObjectIdentity:
    object_type: str
    object_id: Any

    def __str__(self) -> str:
        return f"{self.object_type}#{self.object_id}"


def identity_of(obj: Any) -> ObjectIdentity:
    """
    Durable identity of ``obj``: its type name plus ``obj.id``.

    Objects exposing ``persisted`` (attribute or zero-argument method) must
    report True.
    """
    if obj is None:
        raise RegistryPreconditionError("Object must be persisted (have an ID), got None")

    persisted = getattr(obj, "persisted", None)
    if callable(persisted):
        persisted = persisted()
    object_id = getattr(obj, "id", None)
    if object_id is None or persisted is False:
        raise RegistryPreconditionError(f"Object must be persisted (have an ID), got {type_name_of(obj)}")
    return ObjectIdentity(object_type=type_name_of(obj), object_id=object_id)


def has_identity(obj: Any) -> bool:
    try:
        identity_of(obj)
    except RegistryPreconditionError:
        return False
    return True


class ObjectLocator(Protocol):
    """Resolves a durable identity back to a live object (``None`` once deleted)."""

    def find(self, object_type: str, object_id: Any) -> Optional[Any]:
        ...


@dataclass(frozen=True)
class RegistryEntry:
    key: str
    object_type: str
    object_id: Any
    description: Optional[str] = None
    context: Optional[str] = None
    created_at: Optional[str] = None
    entry_id: Optional[int] = None

    @property
    def identity(self) -> ObjectIdentity:
        return ObjectIdentity(self.object_type, self.object_id)

    @staticmethod
    def for_object(
        key: str,
        obj: Any,
        *,
        description: Optional[str] = None,
        context: Optional[str] = None,
    ) -> "RegistryEntry":
        ident = identity_of(obj)
        return RegistryEntry(
            key=key,
            object_type=ident.object_type,
            object_id=ident.object_id,
            description=description,
            context=context,
            created_at=_utc_now_iso(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.entry_id,
            "key": self.key,
            "object_class": self.object_type,
            "object_id": self.object_id,
            "description": self.description,
            "context": self.context,
            "created_at": self.created_at,
        }
