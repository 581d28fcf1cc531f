from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from seedbank.core.config import SeedbankConfig, get_config
from seedbank.core.dates import Clock
from seedbank.core.registry import BACKENDS, Registry
from seedbank.core.seeding.core import SeedParser
from seedbank.core.seeding.factories import FactoryRegistry
from seedbank.core.seeding.providers import CapabilityProvider
from seedbank.core.seeding.store import MemoryObjectStore

log = logging.getLogger("seedbank.runtime")


@dataclass
class SeedRuntime:
    """Process-wide engine collaborators shared by the loader and the API."""

    store: MemoryObjectStore = field(default_factory=MemoryObjectStore)
    registry: Optional[Registry] = None
    factories: Optional[FactoryRegistry] = None
    helpers: Optional[CapabilityProvider] = None
    default_context: Optional[str] = None
    clock: Optional[Clock] = None

    def __post_init__(self) -> None:
        if self.registry is None:
            self.registry = Registry(BACKENDS["memory"](locator=self.store))
        if self.factories is None:
            self.factories = FactoryRegistry(store=self.store)

    def parser(self, delegate: Optional[CapabilityProvider] = None) -> SeedParser:
        return SeedParser(
            self.registry,
            self.factories,
            helpers=self.helpers,
            delegate=delegate,
            store=self.store,
            clock=self.clock,
            default_context=self.default_context,
        )


def build_runtime(cfg: Optional[SeedbankConfig] = None, **kwargs: Any) -> SeedRuntime:
    """Wire a runtime from configuration (registry backend, default context, helpers)."""
    cfg = cfg or get_config()
    store = kwargs.pop("store", None) or MemoryObjectStore()

    backend_cls = BACKENDS.get(cfg.registry_backend)
    if backend_cls is None:
        raise ValueError(f"Unknown registry backend: {cfg.registry_backend} (known: {', '.join(sorted(BACKENDS))})")
    if cfg.registry_backend == "sqlite":
        backend = backend_cls(cfg.registry_path, locator=store)
    else:
        backend = backend_cls(locator=store)

    log.info("Seed runtime using %s registry backend", cfg.registry_backend)
    return SeedRuntime(
        store=store,
        registry=Registry(backend, default_context=cfg.default_context),
        helpers=kwargs.pop("helpers", None) or cfg.helpers,
        default_context=cfg.default_context,
        **kwargs,
    )


_RUNTIME: Optional[SeedRuntime] = None


def get_runtime() -> SeedRuntime:
    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = build_runtime()
    return _RUNTIME


def set_runtime(runtime: SeedRuntime) -> SeedRuntime:
    global _RUNTIME
    _RUNTIME = runtime
    return runtime


def reset_runtime() -> None:
    global _RUNTIME
    _RUNTIME = None
