from .core import ParseSession, SeedParser
from .factories import FactoryDefinition, FactoryNotFound, FactoryRegistry, UnknownTrait
from .providers import CapabilityProvider, HandlerProvider, ProviderChain
from .references import ReferenceResolver
from .store import MemoryObjectStore

__all__ = [
    "CapabilityProvider",
    "FactoryDefinition",
    "FactoryNotFound",
    "FactoryRegistry",
    "HandlerProvider",
    "MemoryObjectStore",
    "ParseSession",
    "ProviderChain",
    "ReferenceResolver",
    "SeedParser",
    "UnknownTrait",
]
