from __future__ import annotations

from collections import Counter
from typing import Dict, Optional

from prometheus_client import Counter as PromCounter

# Named counters (in-process, test friendly)
_NAMED = Counter()

_PROM_OBJECTS_CREATED = PromCounter(
    "seedbank_objects_created_total",
    "Objects created from seed documents",
    ["strategy"],
)

_PROM_PARSES = PromCounter(
    "seedbank_parse_total",
    "Seed document parses",
    ["outcome", "mode"],
)

_PROM_PARSE_ERRORS = PromCounter(
    "seedbank_parse_errors_total",
    "Seed document parse failures by error kind",
    ["kind"],
)

_PROM_REGISTRY_OPS = PromCounter(
    "seedbank_registry_operations_total",
    "Seed registry operations",
    ["op"],
)


def reset_metrics() -> None:
    """
    Test helper: clears the named counters to avoid cross-test leakage.
    Prometheus counters are process-lifetime and are not reset.
    """
    _NAMED.clear()


def inc_named(name: str, value: int = 1) -> None:
    if not name:
        return
    _NAMED[name] += int(value)


def inc_object_created(strategy: str) -> None:
    inc_named("objects_created")
    inc_named(f"objects_created_{strategy}")
    _PROM_OBJECTS_CREATED.labels(strategy=strategy).inc()


def inc_parse(outcome: str, *, read_only: bool = False, kind: Optional[str] = None) -> None:
    mode = "read_only" if read_only else "write"
    inc_named(f"parse_{outcome}")
    _PROM_PARSES.labels(outcome=outcome, mode=mode).inc()
    if kind:
        inc_named(f"parse_error_{kind}")
        _PROM_PARSE_ERRORS.labels(kind=kind).inc()


def inc_registry(op: str) -> None:
    inc_named(f"registry_{op}")
    _PROM_REGISTRY_OPS.labels(op=op).inc()


def snapshot_named() -> Dict[str, int]:
    return dict(_NAMED)
