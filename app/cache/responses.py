"""
Response construction with cache headers.
"""
import re
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

CACHE_CONTROL = "Cache-Control"
CACHE_TTL_HEADER = "X-Cache-TTL"
CACHE_STATUS_HEADER = "X-Cache-Status"
ETAG = "ETag"

# Headers callers may not override through additional_headers
_MANDATORY = {"content-type", "cache-control", "x-cache-ttl"}

_MAX_AGE_RE = re.compile(r"(?:^|[,\s])max-age=(\d+)", re.IGNORECASE)


def cache_control_value(ttl: int) -> str:
    return f"public, max-age={ttl}, s-maxage={ttl}"


def parse_max_age(cache_control: Optional[str]) -> Optional[int]:
    """Return max-age seconds from a Cache-Control value, or None."""
    if not cache_control:
        return None
    match = _MAX_AGE_RE.search(cache_control)
    if match is None:
        return None
    return int(match.group(1))


def create_cached_response(
    data: Any,
    ttl: int,
    additional_headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Build a 200 JSON response carrying cache headers.

    Args:
        data: JSON-encodable payload
        ttl: Freshness window in seconds
        additional_headers: Extra headers such as ETag or X-Cache-Status.
            Content-Type, Cache-Control and X-Cache-TTL are always ours.

    Returns:
        JSONResponse ready to be returned and stored in the edge cache
    """
    headers = {
        name: value
        for name, value in (additional_headers or {}).items()
        if name.lower() not in _MANDATORY
    }
    headers[CACHE_CONTROL] = cache_control_value(ttl)
    headers[CACHE_TTL_HEADER] = str(ttl)

    return JSONResponse(
        content=jsonable_encoder(data),
        status_code=200,
        headers=headers,
        media_type="application/json",
    )
