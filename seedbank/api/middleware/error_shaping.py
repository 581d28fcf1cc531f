from __future__ import annotations

import logging
import traceback
from typing import Any, Callable, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from seedbank.core.errors import ParsingError, RegistryKeyNotFound, RegistryPreconditionError

log = logging.getLogger("seedbank.errors")


def diagnostic_payload(err: ParsingError) -> Dict[str, Any]:
    """Client-facing view of a diagnostic: message, remediation and location only."""
    payload = err.to_dict()
    payload["user_friendly_message"] = payload.pop("report")
    return payload


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    - Seed diagnostics escaping a handler become 400 with their remediation list
    - Registry lookups that miss become 404, precondition violations 400
    - Anything else: 500 without a stack trace, traceback logged server-side
    - Preserve request_id if present
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except ParsingError as e:
            log.warning("Seed diagnostic %s path=%s: %s", e.kind.value, request.url.path, e.message)
            return JSONResponse(status_code=400, content=diagnostic_payload(e))
        except RegistryKeyNotFound as e:
            return JSONResponse(status_code=404, content={"detail": e.message})
        except RegistryPreconditionError as e:
            return JSONResponse(status_code=400, content={"detail": str(e)})
        except Exception as e:
            rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
            log.error(
                "Unhandled error: %s rid=%s path=%s\n%s",
                str(e),
                rid,
                request.url.path,
                traceback.format_exc(),
            )
            payload = {"detail": "Internal Server Error"}
            if rid:
                payload["request_id"] = rid
            return JSONResponse(status_code=500, content=payload)
