from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0

def haversine(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Kilometres between two lat/lng points on a spherical Earth."""
    phi1, phi2 = radians(lat1), radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = radians(lng2 - lng1)

    h = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(h))

def haversine_metres(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Same as :func:`haversine`, in metres (the unit `$geoNear` reports)."""
    return haversine(lat1, lng1, lat2, lng2) * 1000

def metres_to_km(distance_m: float) -> float:
    return round(distance_m / 1000, 2)
