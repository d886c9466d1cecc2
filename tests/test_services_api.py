import pytest

from streetsupport.api.routes import get_service_search
from streetsupport.api.validation import (
    COORDINATES_OUT_OF_RANGE,
    INVALID_COORDINATES,
    INVALID_PAGINATION,
    INVALID_RADIUS,
    MISSING_COORDINATE,
)
from streetsupport.core.config import settings
from streetsupport.main import app
from tests.fakes import FakeCollection, FakeDatabase, service_doc


@pytest.fixture
def services_db():
    return FakeDatabase(
        ProvidedServices=FakeCollection([
            service_doc("svc-1", name="Caf&eacute; Support"),
            service_doc("svc-2", name="Drop In"),
        ]),
    )


@pytest.fixture
def client(make_client, services_db):
    return make_client(services_db)


@pytest.mark.parametrize("params,message", [
    ({"page": "0"}, INVALID_PAGINATION),
    ({"limit": "0"}, INVALID_PAGINATION),
    ({"page": "abc"}, INVALID_PAGINATION),
    ({"lat": "53.8"}, MISSING_COORDINATE),
    ({"lng": "-1.5"}, MISSING_COORDINATE),
    ({"lat": "north", "lng": "-1.5"}, INVALID_COORDINATES),
    ({"lat": "91", "lng": "-1.5"}, COORDINATES_OUT_OF_RANGE),
    ({"lat": "53.8", "lng": "181"}, COORDINATES_OUT_OF_RANGE),
    ({"lat": "53.8", "lng": "-1.5", "radius": "0"}, INVALID_RADIUS),
    ({"lat": "53.8", "lng": "-1.5", "radius": "-5"}, INVALID_RADIUS),
    ({"lat": "53.8", "lng": "-1.5", "radius": "far"}, INVALID_RADIUS),
])
def test_invalid_parameters_are_rejected(client, services_db, params, message):
    response = client.get("/api/services", params=params)

    assert response.status_code == 400
    assert response.json() == {"status": "error", "message": message}
    assert services_db["ProvidedServices"].pipelines == []


def test_success_envelope(client):
    response = client.get("/api/services", params={"location": "Leeds"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["total"] == 2
    assert body["page"] == 1
    assert body["limit"] == 20
    assert [result["id"] for result in body["results"]] == ["svc-1", "svc-2"]


def test_names_are_html_decoded(client):
    body = client.get("/api/services").json()
    assert body["results"][0]["name"] == "Café Support"


def test_lenient_integer_parsing(client):
    body = client.get("/api/services", params={"page": "1abc", "limit": "1.9"}).json()
    assert body["page"] == 1
    assert body["limit"] == 1
    assert len(body["results"]) == 1


def test_second_request_is_served_from_cache(client, services_db):
    first = client.get("/api/services", params={"location": "Leeds"})
    second = client.get("/api/services", params={"location": "Leeds"})

    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert second.json()["results"] == first.json()["results"]
    assert second.json()["total"] == first.json()["total"]
    assert second.headers["ETag"] == first.headers["ETag"]
    assert len(services_db["ProvidedServices"].pipelines) == 2


def test_response_headers_in_test_environment(client):
    response = client.get("/api/services")

    etag = response.headers["ETag"]
    assert etag.startswith('"services-')
    assert etag.endswith('-2-1"')
    assert response.headers["Vary"] == "Accept-Encoding"
    assert response.headers["Cache-Control"] == "no-cache"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in response.headers
    assert "X-RateLimit-Limit" not in response.headers


def test_etag_changes_with_page(client):
    first = client.get("/api/services", params={"page": "1"}).headers["ETag"]
    second = client.get("/api/services", params={"page": "2"}).headers["ETag"]
    assert first != second


def test_response_headers_outside_test_environment(client, monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")
    monkeypatch.setattr(settings, "PLAYWRIGHT_TEST", False)

    response = client.get("/api/services")

    assert response.headers["Cache-Control"] == "public, max-age=300, s-maxage=600, stale-while-revalidate=86400"
    assert response.headers["X-RateLimit-Limit"] == "100"
    assert response.headers["X-RateLimit-Remaining"] == "99"
    assert response.headers["X-RateLimit-Reset"] == "3600"


def test_incoming_request_id_is_echoed(client):
    response = client.get("/api/services", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_database_down_serves_fallback(make_client):
    response = make_client(None).get("/api/services", params={"category": "health"})

    assert response.status_code == 200
    body = response.json()
    assert [result["id"] for result in body["results"]] == ["service-1", "service-3"]
    assert body["total"] == 2
    assert all(result["distance"] is None for result in body["results"])


def test_database_down_geo_search_serves_fallback(make_client):
    response = make_client(None).get(
        "/api/services", params={"lat": "53.8008", "lng": "-1.5491", "radius": "15"}
    )

    assert response.status_code == 200
    results = response.json()["results"]
    assert [result["id"] for result in results] == ["service-1", "service-2"]
    assert results[0]["distance"] == 0
    assert results[1]["distance"] == pytest.approx(11.12)


def test_database_error_serves_fallback(make_client):
    db = FakeDatabase(ProvidedServices=FakeCollection(error=RuntimeError("connection refused")))

    response = make_client(db).get("/api/services", params={"location": "York"})

    assert response.status_code == 200
    assert [result["id"] for result in response.json()["results"]] == ["service-3"]
    assert response.headers["X-Cache"] == "MISS"


class ExplodingSearch:
    cache = None

    async def search(self, query):
        raise RuntimeError("secret connection string in here")


def test_unexpected_errors_are_generic_503(make_client, services_db):
    client = make_client(services_db)
    app.dependency_overrides[get_service_search] = lambda: ExplodingSearch()

    response = client.get("/api/services")

    assert response.status_code == 503
    assert response.json() == {
        "status": "error",
        "message": "Service temporarily unavailable. Please try again later.",
    }
    assert "secret" not in response.text
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Error-ID" in response.headers
