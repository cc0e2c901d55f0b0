"""Per-client request limits for the decode and scoring API.

Limits are read from ``Settings`` on every request, so they follow the
environment without a restart of the limiter. Uploads are charged by size:
besides the request itself, every full ``UPLOAD_COST_UNIT_BYTES`` of body
counts as one more hit against the decode budget.
"""

import json
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from omr_scoring.config import get_settings


def get_client_ip(request: Request) -> str:
    """
    Key requests by client address.

    X-Forwarded-For is only honoured when the direct peer is one of the
    configured trusted proxies.
    """
    direct_ip: str = get_remote_address(request)

    if direct_ip in get_settings().trusted_proxy_list():
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

    return direct_ip


def configured_limit(group: str) -> Callable[[], str]:
    """
    Build a slowapi limit provider for one endpoint group.

    Args:
        group: Suffix of the ``rate_limit_<group>`` setting

    Returns:
        Zero-argument callable returning the current limit string
    """
    setting = f"rate_limit_{group}"

    def provider() -> str:
        return str(getattr(get_settings(), setting))

    provider.__name__ = f"{group}_limit"
    return provider


def upload_cost(request: Request) -> int:
    """Hits charged for a request: one, plus one per full size unit of its body."""
    try:
        size = int(request.headers.get("content-length", "0"))
    except ValueError:
        size = 0
    return 1 + max(size, 0) // get_settings().upload_cost_unit_bytes


limiter = Limiter(key_func=get_client_ip, default_limits=[configured_limit("default")])

decode_limit = configured_limit("decode")
score_limit = configured_limit("score")
score_batch_limit = configured_limit("score_batch")
presets_limit = configured_limit("presets")


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Return 429 with Retry-After and the limit that was hit.

    Args:
        request: FastAPI request object
        exc: RateLimitExceeded raised by slowapi

    Returns:
        JSON response with status 429
    """
    retry_after = getattr(exc, "retry_after", 60)
    limit = getattr(exc, "detail", None)

    response = Response(
        content=json.dumps({
            "detail": "Rate limit exceeded",
            "message": f"Too many requests for {request.url.path}. Retry after {retry_after} seconds.",
            "retry_after": retry_after,
        }),
        status_code=429,
        media_type="application/json",
    )
    response.headers["Retry-After"] = str(retry_after)
    response.headers["X-RateLimit-Remaining"] = "0"
    if limit:
        response.headers["X-RateLimit-Limit"] = limit

    return response
