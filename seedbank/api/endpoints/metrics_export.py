"""Prometheus metrics scrape endpoint.

Exposes the engine counters (objects created, parses, registry operations)
and the HTTP request metrics to Prometheus-compatible collectors.
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
