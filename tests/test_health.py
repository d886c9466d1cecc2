from fastapi.testclient import TestClient

from streetsupport.main import app


def test_health_without_started_resources():
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "database": "unavailable",
        "cache": "none",
        "fallback_services": 0,
    }
