"""
Runtime configuration.

Values are read from SEEDBANK_* environment variables the first time
``get_config()`` is called. Hosts override individual values (including the
helper capability provider, which cannot come from the environment) through
``configure(**overrides)``.

Environment variables:
    SEEDBANK_ENV               dev | test | prod (default: dev)
    SEEDBANK_SUITES_DIR        directory holding <suite>.yml files (default: ./test_suites)
    SEEDBANK_REGISTRY_BACKEND  memory | sqlite (default: memory)
    SEEDBANK_REGISTRY_PATH     sqlite file for the durable registry table
    SEEDBANK_DEFAULT_CONTEXT   context label for registry entries (default: Reference Data)
    SEEDBANK_DATABASE_NAME     name of the database seeds are written to
    SEEDBANK_DENIED_DATABASES  comma separated database names where seeding is refused
    SEEDBANK_LOG_LEVEL         logging level name (default: INFO)
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple

DEFAULT_CONTEXT = "Reference Data"

_DEFAULT_DENIED_DATABASES = ("production", "staging")
_SEEDING_ENVS = ("dev", "test")


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class SeedbankConfig:
    env: str = "dev"
    suites_dir: Path = Path("test_suites")
    registry_backend: str = "memory"
    registry_path: Path = Path("seedbank_registry.db")
    default_context: str = DEFAULT_CONTEXT
    database_name: Optional[str] = None
    denied_databases: Tuple[str, ...] = _DEFAULT_DENIED_DATABASES
    log_level: str = "INFO"

    # capability provider consulted by the named-method strategies
    helpers: Any = None

    seeding_active: bool = field(default=False, compare=False)

    @property
    def seeding_allowed(self) -> bool:
        if self.env not in _SEEDING_ENVS:
            return False
        if self.database_name and self.database_name in self.denied_databases:
            return False
        return True

    @classmethod
    def from_env(cls) -> "SeedbankConfig":
        denied_raw = os.getenv("SEEDBANK_DENIED_DATABASES")
        return cls(
            env=(os.getenv("SEEDBANK_ENV") or "dev").strip().lower(),
            suites_dir=Path((os.getenv("SEEDBANK_SUITES_DIR") or "test_suites").strip()),
            registry_backend=(os.getenv("SEEDBANK_REGISTRY_BACKEND") or "memory").strip().lower(),
            registry_path=Path((os.getenv("SEEDBANK_REGISTRY_PATH") or "seedbank_registry.db").strip()),
            default_context=(os.getenv("SEEDBANK_DEFAULT_CONTEXT") or DEFAULT_CONTEXT).strip(),
            database_name=(os.getenv("SEEDBANK_DATABASE_NAME") or "").strip() or None,
            denied_databases=_split_csv(denied_raw) if denied_raw is not None else _DEFAULT_DENIED_DATABASES,
            log_level=(os.getenv("SEEDBANK_LOG_LEVEL") or "INFO").strip().upper(),
        )


_CONFIG: Optional[SeedbankConfig] = None


def get_config() -> SeedbankConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = SeedbankConfig.from_env()
    return _CONFIG


def configure(**overrides: Any) -> SeedbankConfig:
    """Replace selected fields of the active configuration and return it."""
    global _CONFIG
    cfg = get_config()
    if "suites_dir" in overrides and overrides["suites_dir"] is not None:
        overrides["suites_dir"] = Path(overrides["suites_dir"])
    if "registry_path" in overrides and overrides["registry_path"] is not None:
        overrides["registry_path"] = Path(overrides["registry_path"])
    _CONFIG = replace(cfg, **overrides)
    return _CONFIG


def reset_config() -> None:
    global _CONFIG
    _CONFIG = None


def is_seeding_active() -> bool:
    return get_config().seeding_active


@contextmanager
def seeding_active() -> Iterator[None]:
    """Flag the process as seeding for the duration of the block."""
    previous = get_config().seeding_active
    configure(seeding_active=True)
    try:
        yield
    finally:
        configure(seeding_active=previous)
