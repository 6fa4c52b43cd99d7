"""
Edge caching layer: deterministic keys, TTL policy, ETags, search
cacheability and a metrics-tracked facade over a key-value store.
"""
from .core import CacheMetrics, SelectionType
from .keys import (
    KEY_VERSION,
    ALL_SELECTIONS_PREFIX,
    SELECTIONS_PREFIX,
    build_selection_key,
    build_all_selections_key,
    build_movie_key,
    build_search_key,
    build_url_title_key,
)
from .ttl_policies import CACHE_TTL, get_cache_ttl, get_selection_ttl
from .responses import create_cached_response, cache_control_value, parse_max_age
from .etag import create_etag, check_etag, not_modified_response
from .classifier import should_cache_search
from .backends import (
    CacheStore,
    CachedEntry,
    InMemoryCacheStore,
    RedisCacheStore,
    create_cache_store,
)
from .edge import EdgeCache, get_edge_cache

__all__ = [
    # Core types
    "CacheMetrics",
    "SelectionType",
    # Keys
    "KEY_VERSION",
    "ALL_SELECTIONS_PREFIX",
    "SELECTIONS_PREFIX",
    "build_selection_key",
    "build_all_selections_key",
    "build_movie_key",
    "build_search_key",
    "build_url_title_key",
    # TTL policies
    "CACHE_TTL",
    "get_cache_ttl",
    "get_selection_ttl",
    # Responses and ETags
    "create_cached_response",
    "cache_control_value",
    "parse_max_age",
    "create_etag",
    "check_etag",
    "not_modified_response",
    # Classifier
    "should_cache_search",
    # Stores
    "CacheStore",
    "CachedEntry",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "create_cache_store",
    # Facade
    "EdgeCache",
    "get_edge_cache",
]
