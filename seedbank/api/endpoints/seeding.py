from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.responses import JSONResponse

from seedbank.api.deps import get_seed_runtime, get_suite_loader, require_seeding_allowed
from seedbank.api.middleware.error_shaping import diagnostic_payload
from seedbank.api.schemas import FileResult, FilesRequest, SeedResult
from seedbank.core.config import get_config, seeding_active
from seedbank.core.errors import ParsingError
from seedbank.core.registry.models import type_name_of
from seedbank.core.runtime import SeedRuntime
from seedbank.core.seeding.loader import SuiteLoader

log = logging.getLogger("seedbank.api")

router = APIRouter(prefix="/api/v1/seeding", tags=["seeding"])

YAML_SUFFIXES = (".yml", ".yaml")


def _summary(created: Sequence[Any]) -> Dict[str, int]:
    return dict(Counter(type_name_of(obj) for obj in created))


def _suites_root() -> Path:
    return get_config().suites_dir.resolve()


def _confine(relative: str) -> Path:
    root = _suites_root()
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root):
        raise HTTPException(status_code=403, detail="Access denied: file path outside suites directory")
    if candidate.suffix not in YAML_SUFFIXES and not candidate.exists():
        candidate = candidate.with_name(candidate.name + ".yml")
    return candidate


def _resolve_files(files: List[str]) -> List[Path]:
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")
    paths = [_confine(f) for f in files]
    for requested, path in zip(files, paths):
        if not path.is_file():
            raise HTTPException(status_code=400, detail=f"File not found: {requested}")
    return paths


def _parse_error(err: ParsingError) -> JSONResponse:
    log.error("YAML seeding error: %s", err.message)
    return JSONResponse(status_code=400, content=diagnostic_payload(err))


# ------------------------------------------------------------
# Browsing
# ------------------------------------------------------------
@router.get("/status")
def status(runtime: SeedRuntime = Depends(get_seed_runtime), loader: SuiteLoader = Depends(get_suite_loader)):
    cfg = get_config()
    return {
        "status": "Ready for YAML operations" if cfg.seeding_allowed else "Seeding disabled for this environment",
        "ready_for_use": cfg.seeding_allowed,
        "env": cfg.env,
        "database_name": cfg.database_name,
        "registry_backend": cfg.registry_backend,
        "registry_entries": runtime.registry.count(),
        "objects_stored": runtime.store.count(),
        "available_suites": loader.list_available_suites(),
    }


@router.get("/files")
def list_files():
    root = _suites_root()
    files: List[Dict[str, Any]] = []
    if root.is_dir():
        for path in root.rglob("*"):
            if not path.is_file() or path.suffix not in YAML_SUFFIXES:
                continue
            stat = path.stat()
            files.append(
                {
                    "path": path.relative_to(root).as_posix(),
                    "name": path.name,
                    "size": stat.st_size,
                    "modified_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                }
            )
    files.sort(key=lambda f: f["path"])
    return {"files": files}


@router.get("/files/content")
def file_content(path: str = Query(..., min_length=1)):
    full = _confine(path)
    if not full.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return {"path": path, "content": full.read_text(encoding="utf-8")}


# ------------------------------------------------------------
# Loading / validation (gated)
# ------------------------------------------------------------
def _run_files(runtime: SeedRuntime, files: List[str], read_only: bool):
    paths = _resolve_files(files)
    results: List[FileResult] = []
    totals: Counter = Counter()
    try:
        with seeding_active():
            for requested, path in zip(files, paths):
                created = runtime.parser().parse_file(path, read_only=read_only)
                summary = _summary(created)
                totals.update(summary)
                results.append(FileResult(file=requested, objects=len(created), summary=summary))
    except ParsingError as e:
        return _parse_error(e)

    total = sum(r.objects for r in results)
    verb = "validated" if read_only else "loaded"
    plural = "" if len(results) == 1 else "s"
    return SeedResult(
        message=f"Successfully {verb} {len(results)} file{plural} with {total} total objects",
        objects_created=total,
        summary=dict(totals),
        results=results,
        read_only=read_only,
    )


async def _run_raw(request: Request, loader: SuiteLoader, read_only: bool):
    body = await request.body()
    if not body.strip():
        raise HTTPException(status_code=400, detail="No YAML content provided in request body")
    try:
        created = loader.load_from_content(body, source_id="request.yml", read_only=read_only)
    except ParsingError as e:
        return _parse_error(e)
    verb = "validated" if read_only else "loaded"
    return SeedResult(
        message=f"YAML content {verb} successfully",
        objects_created=len(created),
        summary=_summary(created),
        read_only=read_only,
    )


@router.post("/load", dependencies=[Depends(require_seeding_allowed)])
def load_files(req: FilesRequest, runtime: SeedRuntime = Depends(get_seed_runtime)):
    return _run_files(runtime, req.files, read_only=False)


@router.post("/load/raw", dependencies=[Depends(require_seeding_allowed)])
async def load_raw(request: Request, loader: SuiteLoader = Depends(get_suite_loader)):
    return await _run_raw(request, loader, read_only=False)


@router.post("/validate", dependencies=[Depends(require_seeding_allowed)])
def validate_files(req: FilesRequest, runtime: SeedRuntime = Depends(get_seed_runtime)):
    return _run_files(runtime, req.files, read_only=True)


@router.post("/validate/raw", dependencies=[Depends(require_seeding_allowed)])
async def validate_raw(request: Request, loader: SuiteLoader = Depends(get_suite_loader)):
    return await _run_raw(request, loader, read_only=True)
