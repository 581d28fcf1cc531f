"""
Capability providers for the ``method`` / ``custom_method`` strategies.

A provider is anything with ``has(name)`` and ``invoke(name, /, **kwargs)``;
the selector is positional-only so handlers may take a ``name`` argument.
Lookup walks an ordered chain and the first provider exposing the name wins.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class CapabilityProvider(Protocol):
    def has(self, name: str) -> bool:
        ...

    def invoke(self, name: str, /, **kwargs: Any) -> Any:
        ...


class HandlerProvider:
    """Provider backed by an explicit name -> callable map."""

    def __init__(self, handlers: Optional[Dict[str, Callable[..., Any]]] = None, *, name: str = "helpers"):
        self.name = name
        self._handlers: Dict[str, Callable[..., Any]] = dict(handlers or {})

    @classmethod
    def from_functions(cls, *functions: Callable[..., Any], name: str = "helpers") -> "HandlerProvider":
        return cls({fn.__name__: fn for fn in functions}, name=name)

    def register(self, handler_name: str, fn: Callable[..., Any]) -> None:
        self._handlers[handler_name] = fn

    def handler(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        """Decorator form of ``register`` using the function name."""
        self._handlers[fn.__name__] = fn
        return fn

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def invoke(self, name: str, /, **kwargs: Any) -> Any:
        return self._handlers[name](**kwargs)

    def __repr__(self) -> str:
        return f"HandlerProvider(name={self.name!r}, handlers={self.names()!r})"


class ProviderChain:
    def __init__(self, providers: Iterable[Optional[CapabilityProvider]]):
        self.providers: List[CapabilityProvider] = [p for p in providers if p is not None]

    def find(self, name: str) -> Optional[CapabilityProvider]:
        for provider in self.providers:
            if provider.has(name):
                return provider
        return None

    def available(self) -> Sequence[str]:
        out: List[str] = []
        for provider in self.providers:
            names = getattr(provider, "names", None)
            if callable(names):
                out.extend(n for n in names() if n not in out)
        return out
