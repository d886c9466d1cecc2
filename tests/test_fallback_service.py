import json

import pytest

from streetsupport.models.dto import ServicesQuery
from streetsupport.services.fallback_service import FallbackDataset
from tests.fakes import LEEDS_LAT, LEEDS_LNG


def keys(documents):
    return [document["Key"] for document in documents]


def test_loads_all_services(fallback):
    assert len(fallback.providers) == 2
    assert fallback.service_count == 4


def test_missing_file_gives_empty_dataset(tmp_path):
    dataset = FallbackDataset(str(tmp_path / "missing.json"))
    assert dataset.providers == []
    assert dataset.search(ServicesQuery()) == []


def test_invalid_file_gives_empty_dataset(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    assert FallbackDataset(str(path)).service_count == 0


def test_entries_without_a_name_are_rejected(tmp_path):
    path = tmp_path / "invalid.json"
    path.write_text(json.dumps([{"slug": "no-name", "services": []}]))
    assert FallbackDataset(str(path)).providers == []


def test_unfiltered_search_returns_everything(fallback):
    assert keys(fallback.search(ServicesQuery())) == ["service-1", "service-2", "service-3", "service-4"]


def test_prefix_filters_ignore_case(fallback):
    assert keys(fallback.search(ServicesQuery(category="HEA"))) == ["service-1", "service-3"]
    assert keys(fallback.search(ServicesQuery(category="health", subcategory="mental"))) == ["service-3"]
    assert keys(fallback.search(ServicesQuery(location="leeds"))) == ["service-1", "service-2"]


def test_documents_look_like_aggregation_rows(fallback):
    document = fallback.search(ServicesQuery(location="York"))[0]
    assert document["name"] == "Test Service 3"
    assert document["ParentCategoryKey"] == "health"
    assert document["organisation"] == {"Key": "test-provider-2", "Name": "Test Provider 2", "IsVerified": False}
    assert document["Address"]["Location"]["coordinates"] == [-1.5491, 54.0008]
    assert "distance" not in document


def test_service_without_coordinates_has_no_location(fallback):
    document = fallback.search(ServicesQuery(category="support"))[0]
    assert "Location" not in document["Address"]


def test_geo_search_applies_radius_and_sorts(fallback):
    query = ServicesQuery(latitude=LEEDS_LAT, longitude=LEEDS_LNG, radius_km=25)
    documents = fallback.search(query)

    # service-3 is ~22 km north, service-4 has no coordinates
    assert keys(documents) == ["service-1", "service-2", "service-3"]
    assert documents[0]["distance"] == 0
    assert documents[1]["distance"] == pytest.approx(11119, rel=0.01)
    assert [d["distance"] for d in documents] == sorted(d["distance"] for d in documents)


def test_geo_search_ignores_location(fallback):
    query = ServicesQuery(location="York", latitude=LEEDS_LAT, longitude=LEEDS_LNG, radius_km=5)
    assert keys(fallback.search(query)) == ["service-1"]


def test_geo_search_uses_default_radius(fallback):
    query = ServicesQuery(latitude=LEEDS_LAT, longitude=LEEDS_LNG)
    assert keys(fallback.search(query)) == ["service-1"]
