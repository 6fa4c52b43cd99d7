"""
Health and cache stats endpoints
"""
from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)


def test_health_endpoint_returns_200():
    """Test that /health returns HTTP 200"""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_endpoint_returns_ok_status():
    """Test that /health returns status: ok"""
    response = client.get("/health")
    data = response.json()
    assert data["status"] == "ok"


def test_cache_stats_structure():
    """Test that /cache/stats exposes hit/miss counters"""
    response = client.get("/cache/stats")
    assert response.status_code == 200
    data = response.json()
    for field in ("enabled", "hits", "misses", "hitRate"):
        assert field in data
