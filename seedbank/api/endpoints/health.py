from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from seedbank.api.deps import get_seed_runtime
from seedbank.core.config import get_config
from seedbank.core.observability.metrics import inc_named
from seedbank.core.runtime import SeedRuntime

router = APIRouter()


@router.get("/health/live")
async def live():
    inc_named("health_live")
    return {"status": "ok"}


@router.get("/health/ready")
def ready(runtime: SeedRuntime = Depends(get_seed_runtime)):
    """
    Ready when the registry backend answers and the suites directory exists.
    """
    inc_named("health_ready")
    problems: list[str] = []

    try:
        runtime.registry.count()
    except Exception as e:
        problems.append(f"registry_unavailable:{type(e).__name__}")

    suites_dir = get_config().suites_dir
    if not suites_dir.is_dir():
        problems.append(f"missing_suites_dir:{suites_dir}")

    if problems:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "problems": problems},
        )

    return {"status": "ready"}
