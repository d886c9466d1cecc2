import pytest

from streetsupport.utils.haversine import haversine, haversine_metres, metres_to_km


def test_same_point_is_zero():
    assert haversine(53.8008, -1.5491, 53.8008, -1.5491) == 0


def test_one_tenth_degree_of_latitude():
    # 0.1 degrees north of Leeds is ~11.1 km
    assert haversine(53.8008, -1.5491, 53.9008, -1.5491) == pytest.approx(11.12, abs=0.01)


def test_leeds_to_manchester():
    assert haversine(53.8008, -1.5491, 53.4808, -2.2426) == pytest.approx(57.9, abs=1)


def test_symmetric():
    assert haversine(53.8, -1.5, 51.5, -0.12) == pytest.approx(haversine(51.5, -0.12, 53.8, -1.5))


def test_metres_variant():
    assert haversine_metres(53.8008, -1.5491, 53.8019, -1.5491) == pytest.approx(122.3, abs=0.5)


def test_metres_to_km_rounds_to_two_places():
    assert metres_to_km(5000) == 5
    assert metres_to_km(1234.4) == 1.23
    assert metres_to_km(0) == 0
