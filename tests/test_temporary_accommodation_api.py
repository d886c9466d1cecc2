import pytest

from streetsupport.api.validation import INVALID_PAGINATION, INVALID_RADIUS, MISSING_COORDINATE
from tests.fakes import LEEDS_LAT, LEEDS_LNG, FakeCollection, FakeDatabase, accommodation_doc

ENDPOINT = "/api/temporary-accommodation"


@pytest.fixture
def listings():
    return FakeCollection([
        accommodation_doc("acc-far", 53.9008, LEEDS_LNG),  # ~11 km
        accommodation_doc("acc-near", 53.8019, LEEDS_LNG),  # ~0.12 km
        accommodation_doc("acc-mid", 53.8188, LEEDS_LNG),  # ~2 km
    ])


@pytest.fixture
def client(make_client, listings):
    return make_client(FakeDatabase(TemporaryAccommodation=listings))


def ids(body):
    return [row["id"] for row in body["data"]]


def test_lists_all_visible_accommodation(client):
    response = client.get(ENDPOINT)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert ids(body) == ["acc-far", "acc-near", "acc-mid"]
    assert body["data"][0]["serviceProviderName"] == "Housing Org"
    assert body["data"][0]["distance"] is None
    assert body["pagination"] == {
        "currentPage": 1,
        "totalPages": 1,
        "totalItems": 3,
        "itemsPerPage": 50,
        "hasNextPage": False,
        "hasPreviousPage": False,
        "nextPage": None,
        "previousPage": None,
    }
    assert body["filters"] == {"location": None, "accommodationType": None, "coordinates": None}


def test_type_and_location_filters(client, listings):
    body = client.get(ENDPOINT, params={"type": "hostel", "location": "Leeds"}).json()

    clauses = listings.queries[0]["$and"]
    assert {"GeneralInfo.AccommodationType": {"$regex": "^hostel", "$options": "i"}} in clauses
    assert {"Address.City": {"$regex": "^Leeds", "$options": "i"}} in clauses
    assert body["filters"]["accommodationType"] == "hostel"
    assert body["filters"]["location"] == "Leeds"


def test_geo_search_sorts_by_distance_within_radius(client):
    body = client.get(ENDPOINT, params={"lat": str(LEEDS_LAT), "lng": str(LEEDS_LNG)}).json()

    assert ids(body) == ["acc-near", "acc-mid"]
    assert [row["distance"] for row in body["data"]] == [0.12, 2.0]
    assert body["pagination"]["totalItems"] == 2
    assert body["filters"]["coordinates"] == {"lat": LEEDS_LAT, "lng": LEEDS_LNG, "radius": 5.0}


def test_pages(client):
    body = client.get(ENDPOINT, params={"page": "2", "limit": "2"}).json()

    assert ids(body) == ["acc-mid"]
    pagination = body["pagination"]
    assert pagination["totalPages"] == 2
    assert pagination["hasNextPage"] is False
    assert pagination["hasPreviousPage"] is True
    assert pagination["previousPage"] == 1


@pytest.mark.parametrize("params,message", [
    ({"limit": "0"}, INVALID_PAGINATION),
    ({"lat": "53.8"}, MISSING_COORDINATE),
    ({"lat": "53.8", "lng": "-1.5", "radius": "-5"}, INVALID_RADIUS),
])
def test_invalid_parameters_are_rejected(client, listings, params, message):
    response = client.get(ENDPOINT, params=params)

    assert response.status_code == 400
    assert response.json() == {"status": "error", "message": message}
    assert listings.queries == []


def test_second_request_is_served_from_cache(client, listings):
    first = client.get(ENDPOINT, params={"type": "hostel"})
    second = client.get(ENDPOINT, params={"type": "hostel"})

    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert second.json() == first.json()
    assert len(listings.queries) == 1


def test_response_headers(client):
    response = client.get(ENDPOINT)

    assert response.headers["ETag"].startswith('"temp-acc-')
    assert response.headers["ETag"].endswith('-3-1"')
    assert response.headers["Vary"] == "Accept-Encoding"
    assert response.headers["Cache-Control"] == "no-cache"


def test_cache_entries_are_separate_from_services_search(client):
    client.get("/api/services", params={"limit": "20"})
    response = client.get(ENDPOINT, params={"limit": "20"})

    assert response.headers["X-Cache"] == "MISS"


def test_database_down_is_503(make_client):
    response = make_client(None).get(ENDPOINT)

    assert response.status_code == 503
    assert response.json() == {
        "status": "error",
        "message": "Service temporarily unavailable. Please try again later.",
    }


def test_database_errors_are_503_and_not_cached(make_client):
    collection = FakeCollection(error=RuntimeError("connection reset"))
    client = make_client(FakeDatabase(TemporaryAccommodation=collection))

    assert client.get(ENDPOINT).status_code == 503
    assert client.get(ENDPOINT).status_code == 503
    assert len(collection.queries) == 2
