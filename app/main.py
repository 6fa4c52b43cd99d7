"""
Movie Database API - Main FastAPI Application
Featured selections, movie details and search served through the edge cache
"""
import logging
import re
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional, List

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app import crud
from app.cache import (
    ALL_SELECTIONS_PREFIX,
    EdgeCache,
    SelectionType,
    build_all_selections_key,
    build_movie_key,
    build_search_key,
    build_selection_key,
    check_etag,
    create_cached_response,
    create_etag,
    get_cache_ttl,
    get_edge_cache,
    get_selection_ttl,
    not_modified_response,
    should_cache_search,
)
from app.cache.keys import SEARCH_PREFIX
from app.cache.responses import CACHE_STATUS_HEADER, ETAG
from app.db import get_db, init_db
from app.schemas import (
    CacheStats,
    OverrideSelectionRequest,
    OverrideSelectionResponse,
    ReselectRequest,
    ReselectResponse,
    TranslationIn,
    TranslationResult,
)
from app.selections import get_movie_for_period, get_selection_date
from config.settings import settings

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("movies.api")

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "Movie Database API"

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title=APP_NAME,
    description="Award-winning movie selections served through an edge cache",
    version=APP_VERSION,
    lifespan=lifespan,
)


def get_today() -> date:
    """Current date, as a dependency so it can be pinned in tests."""
    return date.today()


def parse_accept_language(accept_language: Optional[str]) -> List[str]:
    """
    Language codes from an Accept-Language header, highest quality first.

    "ja-JP,ja;q=0.9,en;q=0.8" -> ["ja", "ja", "en"]
    """
    if not accept_language:
        return []

    languages = []
    for part in accept_language.split(","):
        code, _, quality = part.strip().partition(";q=")
        try:
            weight = float(quality) if quality else 1.0
        except ValueError:
            weight = 0.0
        if code:
            languages.append((code.split("-")[0].lower(), weight))

    languages.sort(key=lambda item: item[1], reverse=True)
    return [code for code, _ in languages]


def resolve_locale(locale: Optional[str], accept_language: Optional[str]) -> str:
    """Explicit ?locale= wins, then Accept-Language, then the default."""
    preferred = [locale] if locale else parse_accept_language(accept_language)
    for code in preferred:
        if code in settings.supported_locales:
            return code
    return settings.default_locale


async def _cached_or_none(cache: EdgeCache, key: str, request: Request) -> Optional[Response]:
    """Cached response for key, or a 304 if the client already holds it."""
    cached = await cache.get(key)
    if cached is None:
        return None

    logger.info(f"Cache hit: {key}")
    etag = cached.headers.get(ETAG)
    if check_etag(request, etag):
        return not_modified_response(etag, int(cached.headers.get("x-cache-ttl", 0)))
    return cached


async def _respond(
    cache: EdgeCache,
    key: str,
    request: Request,
    result: dict,
    ttl: int,
) -> Response:
    """Wrap a fresh result with cache headers and ETag, store it, answer 304 if unchanged."""
    etag = create_etag(result)
    headers = {CACHE_STATUS_HEADER: "MISS"}
    if etag:
        headers[ETAG] = etag

    response = create_cached_response(result, ttl, headers)
    await cache.put(key, response, ttl)

    if check_etag(request, etag):
        return not_modified_response(etag, ttl)
    return response


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": APP_VERSION}


@app.get("/cache/stats", response_model=CacheStats)
def cache_stats(cache: EdgeCache = Depends(get_edge_cache)):
    """Get edge cache hit/miss statistics."""
    metrics = cache.get_metrics().to_dict()
    return CacheStats(enabled=cache.enabled, **metrics)


# ===== SELECTIONS =====

@app.get("/selections")
async def get_selections(
    request: Request,
    locale: Optional[str] = Query(None, description="Title language (en, ja)"),
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
    today: date = Depends(get_today),
):
    """
    Daily, weekly and monthly featured movies.

    Cached under one key per (daily, weekly, monthly date, locale) with the
    daily TTL, since the combined payload changes when the day does.
    """
    try:
        locale = resolve_locale(locale, request.headers.get("accept-language"))
        dates = {kind: get_selection_date(today, kind) for kind in SelectionType}
        cache_key = build_all_selections_key(
            dates[SelectionType.DAILY],
            dates[SelectionType.WEEKLY],
            dates[SelectionType.MONTHLY],
            locale,
        )

        cached = await _cached_or_none(cache, cache_key, request)
        if cached is not None:
            return cached

        logger.info(f"Cache miss: {cache_key}")
        result = {}
        for kind in SelectionType:
            result[kind.value] = await run_in_threadpool(
                get_movie_for_period, db, today, kind, locale
            )
        return await _respond(
            cache, cache_key, request, result, get_selection_ttl(SelectionType.DAILY)
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error fetching selections: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@app.get("/selections/{selection_type}")
async def get_selection_for_type(
    selection_type: SelectionType,
    request: Request,
    locale: Optional[str] = Query(None, description="Title language (en, ja)"),
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
    today: date = Depends(get_today),
):
    """Featured movie for one period, cached with that period's TTL."""
    try:
        locale = resolve_locale(locale, request.headers.get("accept-language"))
        selection_date = get_selection_date(today, selection_type)
        cache_key = build_selection_key(selection_type, selection_date, locale)

        cached = await _cached_or_none(cache, cache_key, request)
        if cached is not None:
            return cached

        logger.info(f"Cache miss: {cache_key}")
        movie = await run_in_threadpool(
            get_movie_for_period, db, today, selection_type, locale
        )
        if movie is None:
            raise HTTPException(status_code=404, detail="No movies available")

        result = {
            "type": selection_type.value,
            "date": selection_date,
            "movie": movie,
        }
        return await _respond(
            cache, cache_key, request, result, get_selection_ttl(selection_type)
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error fetching {selection_type.value} selection: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@app.post("/selections/reselect", response_model=ReselectResponse)
async def reselect(
    body: ReselectRequest,
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
    today: date = Depends(get_today),
):
    """Admin: replace the pick for the current period and invalidate caches."""
    try:
        selection_date = get_selection_date(today, body.type)

        # Save before sweeping so a concurrent miss cannot re-cache the old pick
        movie = await run_in_threadpool(
            get_movie_for_period, db, today, body.type, body.locale, force_new=True
        )
        invalidated = await _invalidate_selection(cache, body.type, selection_date)
        return ReselectResponse(type=body.type, movie=movie, invalidated=invalidated)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error reselecting movie: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@app.post("/admin/override-selection", response_model=OverrideSelectionResponse)
async def override_selection(
    body: OverrideSelectionRequest,
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
):
    """Admin: pin a specific movie for a period date and invalidate caches."""
    try:
        if not DATE_PATTERN.match(body.date):
            raise HTTPException(status_code=400, detail="Date must be in YYYY-MM-DD format")

        movie = await run_in_threadpool(crud.get_movie, db, body.movieId)
        if movie is None:
            raise HTTPException(status_code=404, detail="Movie not found")

        await run_in_threadpool(
            crud.save_selection, db, body.type.value, body.date, body.movieId
        )
        invalidated = await _invalidate_selection(cache, body.type, body.date)
        return OverrideSelectionResponse(
            type=body.type,
            date=body.date,
            movieId=body.movieId,
            invalidated=invalidated,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error overriding selection: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


async def _invalidate_selection(
    cache: EdgeCache, selection_type: SelectionType, selection_date: str
) -> int:
    """Drop every locale's entry for one period plus all combined selections."""
    invalidated = await cache.delete_by_pattern(
        f"selections:{selection_type.value}:{selection_date}"
    )
    invalidated += await cache.delete_by_pattern(ALL_SELECTIONS_PREFIX)
    logger.info(f"Cache invalidated for {selection_type.value} selection on {selection_date}")
    return invalidated


# ===== MOVIES =====

def _search_page(
    db: Session,
    q: Optional[str],
    year: Optional[int],
    language: Optional[str],
    page: int,
    limit: int,
) -> dict:
    movies, total = crud.search_movies(
        db, query=q, year=year, language=language, page=page, limit=limit
    )
    total_pages = (total + limit - 1) // limit
    return {
        "movies": [crud.movie_to_dict(movie, None) for movie in movies],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalCount": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
        "filters": {"query": q, "year": year, "language": language},
    }


def _movie_details(db: Session, uid: str, full: bool) -> Optional[dict]:
    movie = crud.get_movie(db, uid)
    if movie is None:
        return None
    return crud.movie_to_dict(movie, None, full=full)


@app.get("/movies/search")
async def search_movies(
    q: Optional[str] = Query(None, description="Title search text"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    year: Optional[int] = Query(None, description="Release year filter"),
    language: Optional[str] = Query(None, description="Original language filter"),
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
):
    """
    Search movies by title.

    Only broad or popular unfiltered searches go through the cache.
    """
    try:
        cacheable = should_cache_search(q, year, language)
        cache_key = build_search_key(q, page, limit, {"year": year, "language": language})

        if cacheable:
            cached = await cache.get(cache_key)
            if cached is not None:
                return cached

        result = await run_in_threadpool(_search_page, db, q, year, language, page, limit)

        if not cacheable:
            return result

        ttl = get_cache_ttl("search", "common")
        response = create_cached_response(result, ttl, {CACHE_STATUS_HEADER: "MISS"})
        await cache.put(cache_key, response, ttl)
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error searching movies: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@app.get("/movies/{uid}")
async def get_movie_details(
    uid: str,
    request: Request,
    full: bool = Query(True, description="Include ids and all translations"),
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
):
    """
    Movie details with ETag support.

    The payload carries every translation, so it does not depend on locale.
    """
    try:
        cache_key = build_movie_key(uid, include_full_details=full)

        cached = await _cached_or_none(cache, cache_key, request)
        if cached is not None:
            return cached

        logger.info(f"Cache miss: {cache_key}")
        result = await run_in_threadpool(_movie_details, db, uid, full)
        if result is None:
            raise HTTPException(status_code=404, detail="Movie not found")

        ttl = get_cache_ttl("movie", "full" if full else "basic")
        return await _respond(cache, cache_key, request, result, ttl)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error fetching movie details: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


async def _invalidate_movie(cache: EdgeCache, uid: str) -> int:
    """
    Drop cached details for a movie plus listings that may show its title.

    Returns the number of listing entries removed.
    """
    for full in (True, False):
        await cache.delete(build_movie_key(uid, include_full_details=full))
    invalidated = await cache.delete_by_pattern(ALL_SELECTIONS_PREFIX)
    invalidated += await cache.delete_by_pattern(SEARCH_PREFIX)
    logger.info(f"Cache invalidated for movie {uid}")
    return invalidated


@app.post("/movies/{uid}/translations", response_model=TranslationResult)
async def upsert_translation(
    uid: str,
    body: TranslationIn,
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
):
    """Add or update a title translation, then invalidate the movie's caches."""
    try:
        if await run_in_threadpool(crud.get_movie, db, uid) is None:
            raise HTTPException(status_code=404, detail="Movie not found")

        await run_in_threadpool(
            crud.upsert_translation, db, uid, body.languageCode.lower(), body.content.strip()
        )
        invalidated = await _invalidate_movie(cache, uid)
        return TranslationResult(success=True, invalidated=invalidated)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error adding/updating translation: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@app.delete("/movies/{uid}/translations/{lang}", response_model=TranslationResult)
async def delete_translation(
    uid: str,
    lang: str,
    db: Session = Depends(get_db),
    cache: EdgeCache = Depends(get_edge_cache),
):
    """Delete a title translation, then invalidate the movie's caches."""
    try:
        removed = await run_in_threadpool(crud.delete_translation, db, uid, lang.lower())
        if not removed:
            raise HTTPException(status_code=404, detail="Translation not found")

        invalidated = await _invalidate_movie(cache, uid)
        return TranslationResult(success=True, invalidated=invalidated)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error deleting translation: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
