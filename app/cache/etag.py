"""
ETag generation and conditional request checks.

The tag is a change detector, not an integrity check: a truncated SHA-256 of
the canonical JSON form of the payload. Equal payloads give equal tags no
matter how the dicts were built.
"""
import hashlib
import json
import logging
from typing import Any, Optional

from fastapi import Response
from fastapi.encoders import jsonable_encoder

from .responses import CACHE_CONTROL, ETAG

logger = logging.getLogger("cache.etag")

IF_NONE_MATCH = "If-None-Match"
ETAG_HEX_LENGTH = 16


def _canonical_json(payload: Any) -> str:
    return json.dumps(
        jsonable_encoder(payload),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def create_etag(payload: Any) -> Optional[str]:
    """
    Create a quoted ETag for a payload.

    Returns:
        '"<16 hex chars>"', or None if the payload cannot be serialized
    """
    try:
        content = _canonical_json(payload)
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning(f"ETag serialization failed: {e}")
        return None

    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:ETAG_HEX_LENGTH]
    return f'"{digest}"'


def check_etag(request: Any, current_etag: Optional[str]) -> bool:
    """
    True if the request's If-None-Match equals current_etag exactly.

    Args:
        request: Anything exposing a case-insensitive `headers` mapping
            (FastAPI/Starlette Request)
        current_etag: Tag of the payload about to be served
    """
    if not current_etag:
        return False
    return request.headers.get(IF_NONE_MATCH) == current_etag


def not_modified_response(etag: str, ttl: int) -> Response:
    """Empty 304 returned when check_etag matched."""
    return Response(
        status_code=304,
        headers={ETAG: etag, CACHE_CONTROL: f"public, max-age={ttl}"},
    )
