"""
Search cacheability heuristic.

Only broad or popular searches are cached: it keeps the key space small and
skips entries that would rarely be read again. Filtered searches are never
cached.
"""
from typing import Iterable, Optional

from config.settings import settings

SHORT_QUERY_LENGTH = 3


def should_cache_search(
    query: Optional[str],
    year: Optional[int] = None,
    language: Optional[str] = None,
    common_terms: Optional[Iterable[str]] = None,
) -> bool:
    """
    Decide whether a search result is worth caching.

    Args:
        query: Raw search text (None or "" means "all movies")
        year: Year filter, if any
        language: Language filter, if any
        common_terms: Allow-list of popular terms; defaults to
            settings.common_search_terms

    Returns:
        True for unfiltered empty/short queries or queries containing a
        common term, False otherwise
    """
    if year is not None or language is not None:
        return False

    if not query or len(query) < SHORT_QUERY_LENGTH:
        return True

    terms = settings.common_search_terms if common_terms is None else common_terms
    folded = query.casefold()
    return any(term.casefold() in folded for term in terms if term)
