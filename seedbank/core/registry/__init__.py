from .backends import BACKENDS, MemoryRegistryBackend, RegistryBackend, SqliteRegistryBackend
from .models import ObjectIdentity, ObjectLocator, RegistryEntry, has_identity, identity_of, type_name_of
from .registry import Registry

__all__ = [
    "BACKENDS",
    "MemoryRegistryBackend",
    "ObjectIdentity",
    "ObjectLocator",
    "Registry",
    "RegistryBackend",
    "RegistryEntry",
    "SqliteRegistryBackend",
    "has_identity",
    "identity_of",
    "type_name_of",
]
