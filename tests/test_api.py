"""
Route tests: selections, movie details and search going through the edge
cache, with ETag revalidation and invalidation after admin writes.

Uses an in-memory SQLite database and a fresh in-memory edge cache per test.
"""
import asyncio
import time
from datetime import date

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import crud
from app.cache import EdgeCache, InMemoryCacheStore, get_edge_cache
from app.db import get_db
from app.main import app, get_today, parse_accept_language, resolve_locale
from app.models import Base, Movie, Translation

# Monday
TODAY = date(2024, 6, 24)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = factory()
    db.add_all([
        Movie(uid="m1", year=2023, original_language="ja", imdb_id="tt0000001"),
        Movie(uid="m2", year=2024, original_language="en"),
        Movie(uid="m3", year=2022, original_language="fr"),
        Translation(movie_uid="m1", language_code="ja", content="君たちはどう生きるか", is_default=True),
        Translation(movie_uid="m1", language_code="en", content="The Boy and the Heron"),
        Translation(movie_uid="m2", language_code="en", content="Oscar Night", is_default=True),
        Translation(movie_uid="m3", language_code="fr", content="Anatomie d'une chute", is_default=True),
    ])
    db.commit()
    db.close()
    yield factory
    engine.dispose()


@pytest.fixture
def edge_cache():
    return EdgeCache(InMemoryCacheStore())


@pytest.fixture
def client(session_factory, edge_cache):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_edge_cache] = lambda: edge_cache
    app.dependency_overrides[get_today] = lambda: TODAY
    yield TestClient(app)
    app.dependency_overrides.clear()


# ===== LOCALE =====

def test_parse_accept_language_orders_by_quality():
    assert parse_accept_language("en;q=0.5,ja-JP,fr;q=0.8") == ["ja", "fr", "en"]
    assert parse_accept_language(None) == []


def test_resolve_locale():
    assert resolve_locale("ja", "en") == "ja"
    assert resolve_locale(None, "fr,ja;q=0.9") == "ja"
    assert resolve_locale("de", None) == "en"


# ===== SELECTIONS =====

class TestSelections:

    def test_miss_then_hit(self, client, edge_cache):
        first = client.get("/selections?locale=en")
        assert first.status_code == 200
        assert first.headers["x-cache-status"] == "MISS"
        assert first.headers["cache-control"] == "public, max-age=3600, s-maxage=3600"
        assert first.headers["x-cache-ttl"] == "3600"
        data = first.json()
        assert set(data) == {"daily", "weekly", "monthly"}

        second = client.get("/selections?locale=en")
        assert second.status_code == 200
        assert second.headers["x-cache-status"] == "HIT"
        assert second.json() == data

        metrics = edge_cache.get_metrics()
        assert (metrics.hits, metrics.misses) == (1, 1)

    def test_cache_key_uses_period_dates_and_locale(self, client, edge_cache):
        client.get("/selections", headers={"Accept-Language": "ja-JP,ja;q=0.9"})
        key = "selections:all:2024-06-24:2024-06-21:2024-06-01:ja:v1"
        assert key in edge_cache.store._entries

    def test_etag_revalidation(self, client):
        first = client.get("/selections?locale=en")
        etag = first.headers["etag"]

        not_modified = client.get("/selections?locale=en", headers={"If-None-Match": etag})
        assert not_modified.status_code == 304
        assert not_modified.headers["etag"] == etag

        changed = client.get("/selections?locale=en", headers={"If-None-Match": '"different"'})
        assert changed.status_code == 200

    def test_single_period_uses_its_ttl(self, client):
        response = client.get("/selections/weekly?locale=en")
        assert response.status_code == 200
        assert response.headers["x-cache-ttl"] == "21600"
        data = response.json()
        assert data["type"] == "weekly"
        assert data["date"] == "2024-06-21"
        assert data["movie"]["uid"] in {"m1", "m2", "m3"}

    def test_selection_is_stable(self, client, edge_cache):
        first = client.get("/selections/daily?locale=en").json()
        edge_cache.store._entries.clear()
        second = client.get("/selections/daily?locale=en").json()
        assert first["movie"]["uid"] == second["movie"]["uid"]

    def test_reselect_invalidates_and_changes_pick(self, client, edge_cache):
        before = client.get("/selections/daily?locale=en").json()["movie"]["uid"]
        client.get("/selections?locale=en")

        response = client.post("/selections/reselect", json={"type": "daily", "locale": "en"})
        assert response.status_code == 200
        body = response.json()
        assert body["invalidated"] == 2
        assert body["movie"]["uid"] != before

        after = client.get("/selections/daily?locale=en")
        assert after.headers["x-cache-status"] == "MISS"
        assert after.json()["movie"]["uid"] == body["movie"]["uid"]

    def test_reselect_rejects_unknown_type(self, client):
        response = client.post("/selections/reselect", json={"type": "hourly"})
        assert response.status_code == 422

    def test_reselect_saves_before_invalidating(
        self, client, edge_cache, session_factory, monkeypatch
    ):
        before = client.get("/selections/daily?locale=en").json()["movie"]["uid"]

        stored_during_sweep = []
        real_keys = edge_cache.store.keys

        def recording_keys(prefix=""):
            db = session_factory()
            try:
                stored_during_sweep.append(
                    crud.get_selection(db, "daily", "2024-06-24").movie_uid
                )
            finally:
                db.close()
            return real_keys(prefix)

        monkeypatch.setattr(edge_cache.store, "keys", recording_keys)

        response = client.post("/selections/reselect", json={"type": "daily", "locale": "en"})
        assert response.status_code == 200
        assert stored_during_sweep
        assert all(uid != before for uid in stored_during_sweep)


class TestOverrideSelection:

    def test_override_invalidates_and_serves_new_pick(self, client, edge_cache):
        before = client.get("/selections/daily?locale=en").json()["movie"]["uid"]
        client.get("/selections?locale=en")
        assert "selections:daily:2024-06-24:en:v1" in edge_cache.store._entries

        replacement = sorted({"m1", "m2", "m3"} - {before})[0]
        response = client.post(
            "/admin/override-selection",
            json={"type": "daily", "date": "2024-06-24", "movieId": replacement},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["movieId"] == replacement
        assert body["invalidated"] == 2

        keys = set(edge_cache.store._entries)
        assert not any(key.startswith("selections:") for key in keys)

        after = client.get("/selections/daily?locale=en")
        assert after.headers["x-cache-status"] == "MISS"
        assert after.json()["movie"]["uid"] == replacement

    def test_override_for_another_date_leaves_current_cache(self, client, edge_cache):
        client.get("/selections/daily?locale=en")

        response = client.post(
            "/admin/override-selection",
            json={"type": "daily", "date": "2024-07-01", "movieId": "m1"},
        )
        assert response.status_code == 200
        assert "selections:daily:2024-06-24:en:v1" in edge_cache.store._entries

    @pytest.mark.parametrize("bad_date", ["24-06-2024", "2024/06/24", "tomorrow"])
    def test_override_rejects_malformed_date(self, client, bad_date):
        response = client.post(
            "/admin/override-selection",
            json={"type": "daily", "date": bad_date, "movieId": "m1"},
        )
        assert response.status_code == 400

    def test_override_rejects_unknown_type(self, client):
        response = client.post(
            "/admin/override-selection",
            json={"type": "hourly", "date": "2024-06-24", "movieId": "m1"},
        )
        assert response.status_code == 422

    def test_override_for_missing_movie(self, client, edge_cache):
        client.get("/selections/daily?locale=en")

        response = client.post(
            "/admin/override-selection",
            json={"type": "daily", "date": "2024-06-24", "movieId": "nope"},
        )
        assert response.status_code == 404
        assert "selections:daily:2024-06-24:en:v1" in edge_cache.store._entries


# ===== MOVIES =====

class TestMovieDetails:

    def test_full_details_cached_with_etag(self, client):
        response = client.get("/movies/m1")
        assert response.status_code == 200
        assert response.headers["x-cache-ttl"] == "86400"
        assert response.headers["etag"].startswith('"')
        data = response.json()
        assert data["title"] == "君たちはどう生きるか"
        assert data["imdbUrl"] == "https://www.imdb.com/title/tt0000001/"
        assert [t["languageCode"] for t in data["translations"]] == ["en", "ja"]

        cached = client.get("/movies/m1")
        assert cached.headers["x-cache-status"] == "HIT"

        revalidated = client.get("/movies/m1", headers={"If-None-Match": response.headers["etag"]})
        assert revalidated.status_code == 304

    def test_basic_details_use_basic_ttl(self, client, edge_cache):
        response = client.get("/movies/m1?full=false")
        assert response.status_code == 200
        assert response.headers["x-cache-ttl"] == "3600"
        assert "translations" not in response.json()
        assert "movie:m1:basic:v1" in edge_cache.store._entries

    def test_missing_movie(self, client, edge_cache):
        response = client.get("/movies/nope")
        assert response.status_code == 404
        assert "movie:nope:full:v1" not in edge_cache.store._entries

    def test_translation_update_invalidates(self, client, edge_cache):
        client.get("/movies/m1")
        client.get("/movies/m1?full=false")
        client.get("/selections?locale=en")

        response = client.post(
            "/movies/m1/translations",
            json={"languageCode": "fr", "content": "Le Garçon et le Héron"},
        )
        assert response.status_code == 200
        assert response.json()["invalidated"] == 1

        keys = set(edge_cache.store._entries)
        assert "movie:m1:full:v1" not in keys
        assert "movie:m1:basic:v1" not in keys
        assert not any(key.startswith("selections:all:") for key in keys)

        refreshed = client.get("/movies/m1")
        assert refreshed.headers["x-cache-status"] == "MISS"
        assert "fr" in [t["languageCode"] for t in refreshed.json()["translations"]]

    def test_translation_validation(self, client):
        response = client.post("/movies/m1/translations", json={"languageCode": "fra", "content": "x"})
        assert response.status_code == 422

    def test_translation_for_missing_movie(self, client):
        response = client.post("/movies/nope/translations", json={"languageCode": "en", "content": "x"})
        assert response.status_code == 404

    def test_translation_delete(self, client, edge_cache):
        client.get("/movies/m1")
        response = client.delete("/movies/m1/translations/en")
        assert response.status_code == 200
        assert "movie:m1:full:v1" not in edge_cache.store._entries

        assert client.delete("/movies/m1/translations/en").status_code == 404


# ===== SEARCH =====

class TestSearch:

    def test_common_query_is_cached(self, client, edge_cache):
        first = client.get("/movies/search?q=oscar")
        assert first.status_code == 200
        assert first.headers["x-cache-ttl"] == "1800"
        assert [m["uid"] for m in first.json()["movies"]] == ["m2"]

        second = client.get("/movies/search?q=oscar")
        assert second.headers["x-cache-status"] == "HIT"
        assert "search:oscar:1:20::v1" in edge_cache.store._entries

    def test_specific_query_is_not_cached(self, client, edge_cache):
        response = client.get("/movies/search?q=heron")
        assert response.status_code == 200
        assert "x-cache-ttl" not in response.headers
        assert [m["uid"] for m in response.json()["movies"]] == ["m1"]
        assert edge_cache.get_metrics().total == 0

    def test_filtered_query_is_not_cached(self, client, edge_cache):
        response = client.get("/movies/search?year=2024")
        assert response.status_code == 200
        assert response.json()["pagination"]["totalCount"] == 1
        assert len(edge_cache.store) == 0

    def test_pagination(self, client):
        data = client.get("/movies/search?limit=2&page=2").json()
        assert data["pagination"] == {
            "currentPage": 2,
            "totalPages": 2,
            "totalCount": 3,
            "hasNextPage": False,
            "hasPrevPage": True,
        }
        assert len(data["movies"]) == 1

    def test_limit_is_bounded(self, client):
        assert client.get("/movies/search?limit=500").status_code == 422

    @pytest.mark.asyncio
    async def test_slow_queries_run_concurrently(self, client, monkeypatch):
        def slow_search(db, **kwargs):
            time.sleep(0.3)
            return [], 0

        monkeypatch.setattr(crud, "search_movies", slow_search)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            started = time.perf_counter()
            responses = await asyncio.gather(
                *[ac.get("/movies/search?q=specific-title") for _ in range(4)]
            )
            elapsed = time.perf_counter() - started

        assert all(response.status_code == 200 for response in responses)
        # Four sequential queries would take 1.2s
        assert elapsed < 0.9


def test_cache_failure_is_invisible(client, edge_cache):
    """A broken store must not turn into an error response."""
    async def broken(*args, **kwargs):
        raise ConnectionError("store unreachable")

    edge_cache.store.match = broken
    edge_cache.store.put = broken

    response = client.get("/movies/m2")
    assert response.status_code == 200
    assert response.json()["uid"] == "m2"
    assert edge_cache.get_metrics().misses == 1
