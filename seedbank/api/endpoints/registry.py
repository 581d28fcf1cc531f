from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from seedbank.api.deps import get_seed_runtime, require_seeding_allowed
from seedbank.api.schemas import RegistryEntryOut, RegistryPage
from seedbank.core.registry import Registry, RegistryEntry
from seedbank.core.runtime import SeedRuntime

router = APIRouter(prefix="/api/v1/registry", tags=["registry"])

MAX_PER_PAGE = 1000
DEFAULT_PER_PAGE = 50


def _entry_out(registry: Registry, entry: RegistryEntry) -> RegistryEntryOut:
    exists = registry.object_exists(entry)
    return RegistryEntryOut(
        **entry.to_dict(),
        object_exists=exists,
        object_preview=registry.preview(entry),
    )


@router.get("/", response_model=RegistryPage)
def list_entries(
    model_filter: Optional[str] = Query(None, description="object class to filter on ('all' for none)"),
    search: Optional[str] = None,
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1),
    offset: int = Query(0, ge=0),
    runtime: SeedRuntime = Depends(get_seed_runtime),
):
    registry = runtime.registry
    entries = registry.entries()
    total = len(entries)

    if model_filter and model_filter != "all":
        entries = [e for e in entries if e.object_type == model_filter]
    if search:
        needle = search.lower()
        entries = [e for e in entries if needle in e.key.lower()]
    entries.sort(key=lambda e: (e.object_type, e.key))

    per_page = min(per_page, MAX_PER_PAGE)
    page = entries[offset : offset + per_page]
    return RegistryPage(
        entries=[_entry_out(registry, e) for e in page],
        total_count=total,
        filtered_count=len(entries),
        model_counts=registry.stats(recent=0)["model_counts"],
        per_page=per_page,
        offset=offset,
    )


@router.get("/stats")
def stats(runtime: SeedRuntime = Depends(get_seed_runtime)) -> Dict[str, Any]:
    return runtime.registry.stats()


@router.get("/entries/{key}", response_model=RegistryEntryOut)
def get_entry(key: str, runtime: SeedRuntime = Depends(get_seed_runtime)):
    entry = runtime.registry.entry(key)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Registry key '{key}' not found")
    return _entry_out(runtime.registry, entry)


@router.delete("/orphaned", dependencies=[Depends(require_seeding_allowed)])
def clean_orphaned(runtime: SeedRuntime = Depends(get_seed_runtime)):
    deleted = runtime.registry.clean_orphaned()
    return {"message": f"Cleaned {deleted} orphaned entries", "deleted_count": deleted}
