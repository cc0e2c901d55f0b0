"""One JSON log line per API request, carrying the decode outcome.

Routers report what a decode produced through ``X-Record-Count``,
``X-Rejected-Count`` and ``X-Average-Confidence`` response headers; the
middleware copies them into the log entry so batch quality can be followed
from the access log alone. Request and response bodies are never logged:
scanner lines contain student names and national ids.
"""

import json
import logging
import re
import sys
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Response header -> (log key, parser)
OUTCOME_HEADERS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "X-Record-Count": ("record_count", int),
    "X-Rejected-Count": ("rejected_count", int),
    "X-Average-Confidence": ("average_confidence", float),
}

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def configure_logging(level: str = "INFO") -> None:
    """Send bare messages to stdout; entries are already JSON."""
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(level)


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse a caller's request id when it is a plain token, otherwise mint one."""
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return str(uuid.uuid4())


def decode_outcome(response: Response) -> Dict[str, Any]:
    """Summary fields a router attached to its response."""
    outcome: Dict[str, Any] = {}
    for header, (key, parse) in OUTCOME_HEADERS.items():
        value = response.headers.get(header)
        if value is not None:
            outcome[key] = parse(value)
    return outcome


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status, timing, upload size and decode outcome."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started = time.perf_counter()

        entry: Dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
        }
        content_length = request.headers.get("content-length", "")
        if content_length.isdigit():
            entry["body_bytes"] = int(content_length)

        try:
            response = await call_next(request)
        except Exception as e:
            entry.update({
                "status_code": 500,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "error_type": type(e).__name__,
                "error": str(e),
            })
            logger.error(json.dumps(entry), exc_info=True)
            raise

        entry["status_code"] = response.status_code
        entry["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        entry.update(decode_outcome(response))

        if response.status_code == 429:
            logger.warning(json.dumps(entry))
        else:
            logger.info(json.dumps(entry))

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
