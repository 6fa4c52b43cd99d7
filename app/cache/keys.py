"""
Cache key construction.

Keys are plain strings built from every discriminating field, never from a
hash of them, so two different inputs cannot share a key. Every key ends in
KEY_VERSION; bump it when the shape of a cached payload changes instead of
flushing the store.

Namespace:
- selections:<type>:<date>:<locale>:v1
- selections:all:<daily>:<weekly>:<monthly>:<locale>:v1
- movie:<id>:<basic|full>:v1
- search:<query|all>:<page>:<limit>:<filters>:v1
- url:title:<hash>:v1
"""
import hashlib
from enum import Enum
from typing import Any, Dict, Optional, Union

from .core import SelectionType

KEY_VERSION = "v1"

SELECTIONS_PREFIX = "selections:"
ALL_SELECTIONS_PREFIX = "selections:all:"
MOVIE_PREFIX = "movie:"
SEARCH_PREFIX = "search:"


def _field(value: Union[Enum, str]) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def build_selection_key(
    selection_type: Union[SelectionType, str],
    iso_date: str,
    locale: str,
) -> str:
    """
    Key for a single period selection.

    The date is used verbatim, so callers must pass a canonical YYYY-MM-DD
    string or equal dates will miss each other.
    """
    return f"selections:{_field(selection_type)}:{iso_date}:{locale}:{KEY_VERSION}"


def build_all_selections_key(
    daily_date: str,
    weekly_date: str,
    monthly_date: str,
    locale: str,
) -> str:
    """Key for the combined daily/weekly/monthly payload."""
    return (
        f"{ALL_SELECTIONS_PREFIX}{daily_date}:{weekly_date}:{monthly_date}"
        f":{locale}:{KEY_VERSION}"
    )


def build_movie_key(movie_id: str, include_full_details: bool = False) -> str:
    detail = "full" if include_full_details else "basic"
    return f"movie:{movie_id}:{detail}:{KEY_VERSION}"


def build_search_key(
    query: Optional[str],
    page: int,
    limit: int,
    filters: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Key for a search result page.

    Filters with None or empty values are dropped; the rest are sorted so
    argument order never changes the key.
    """
    pairs = sorted(
        f"{name}:{value}"
        for name, value in (filters or {}).items()
        if value is not None and value != ""
    )
    return f"search:{query or 'all'}:{page}:{limit}:{'|'.join(pairs)}:{KEY_VERSION}"


def build_url_title_key(url: str) -> str:
    """Key for a fetched page title, hashed since URLs are long."""
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
    return f"url:title:{digest}:{KEY_VERSION}"
