"""
TTL configuration by data category.

Data that changes less often must never get a shorter TTL than data that
changes more often. The orderings are checked at import time so a bad edit
to the table fails loudly instead of serving stale selections.
"""
from types import MappingProxyType
from typing import Mapping, Union

from .core import SelectionType


# TTL Configuration by (category, subcategory), in seconds
_TTL_TABLE = {
    "selections": {
        "daily": 3600,            # 1 hour
        "weekly": 21_600,         # 6 hours
        "monthly": 86_400,        # 24 hours
    },
    "movie": {
        "basic": 3600,            # 1 hour
        "full": 86_400,           # 24 hours
    },
    "search": {
        "common": 1800,           # 30 minutes
        "specific": 600,          # 10 minutes
    },
    "admin": {
        "movies": 600,            # 10 minutes
        "search": 300,            # 5 minutes
    },
    "utility": {
        "urlTitle": 604_800,      # 1 week
    },
}


def _freeze(table: dict) -> Mapping[str, Mapping[str, int]]:
    return MappingProxyType(
        {category: MappingProxyType(dict(entries)) for category, entries in table.items()}
    )


def check_ttl_ordering(table: Mapping[str, Mapping[str, int]]) -> None:
    """
    Raise ValueError if the table breaks the freshness ordering.

    selections: daily < weekly < monthly
    movie: basic <= full
    """
    selections = table["selections"]
    if not selections["daily"] < selections["weekly"] < selections["monthly"]:
        raise ValueError(
            "selection TTLs must satisfy daily < weekly < monthly, got "
            f"{selections['daily']}/{selections['weekly']}/{selections['monthly']}"
        )

    movie = table["movie"]
    if movie["basic"] > movie["full"]:
        raise ValueError(
            f"movie.basic TTL ({movie['basic']}) exceeds movie.full ({movie['full']})"
        )

    for category, entries in table.items():
        for subcategory, ttl in entries.items():
            if not isinstance(ttl, int) or ttl <= 0:
                raise ValueError(f"TTL for {category}.{subcategory} must be a positive int")


check_ttl_ordering(_TTL_TABLE)

CACHE_TTL: Mapping[str, Mapping[str, int]] = _freeze(_TTL_TABLE)


def get_cache_ttl(category: str, subcategory: str) -> int:
    """
    Look up the TTL for a (category, subcategory) pair.

    Raises:
        KeyError: unknown pair
    """
    return CACHE_TTL[category][subcategory]


def get_selection_ttl(selection_type: Union[SelectionType, str]) -> int:
    """TTL for a selection period."""
    return CACHE_TTL["selections"][SelectionType(selection_type).value]
