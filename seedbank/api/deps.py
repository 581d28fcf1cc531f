from __future__ import annotations

import logging

from fastapi import Depends, HTTPException

from seedbank.core.config import get_config
from seedbank.core.runtime import SeedRuntime, get_runtime
from seedbank.core.seeding.loader import SuiteLoader

log = logging.getLogger("seedbank.api")


def get_seed_runtime() -> SeedRuntime:
    """Engine collaborators for a request. Override in hosts/tests via dependency_overrides."""
    return get_runtime()


def get_suite_loader(runtime: SeedRuntime = Depends(get_seed_runtime)) -> SuiteLoader:
    return SuiteLoader(runtime)


def require_seeding_allowed() -> None:
    """Refuse seeding outside dev/test or against a denied database."""
    cfg = get_config()
    if cfg.seeding_allowed:
        return
    log.warning("Seeding refused: env=%s database=%s", cfg.env, cfg.database_name)
    raise HTTPException(status_code=403, detail="YAML seeding not permitted for this environment")
