import math
import re
from typing import Mapping, Optional

from streetsupport.core.config import settings
from streetsupport.models.dto import ServicesQuery

INVALID_PAGINATION = "Invalid page or limit value"
MISSING_COORDINATE = "Both lat and lng parameters are required for geospatial queries"
INVALID_COORDINATES = "Invalid latitude or longitude values"
COORDINATES_OUT_OF_RANGE = "Latitude must be between -90 and 90, longitude must be between -180 and 180"
INVALID_RADIUS = "Invalid radius value"

# Leading-number parses, so "2abc" reads as 2 the way browsers' parseInt does
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

class ServicesQueryError(ValueError):
    """Bad query parameters. Rendered as a 400 before any database work."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

def parse_int(value: Optional[str], default: int) -> Optional[int]:
    if not value:
        return default
    match = _INT_PREFIX.match(value)
    return int(match.group(1)) if match else None

def parse_float(value: str) -> Optional[float]:
    match = _FLOAT_PREFIX.match(value)
    if not match:
        return None
    number = float(match.group(1))
    return number if math.isfinite(number) else None

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None

def parse_services_query(params: Mapping[str, str], default_limit: Optional[int] = None) -> ServicesQuery:
    """Validate `/api/services` query parameters.

    Raises:
        ServicesQueryError: with the client-facing message for the first rule broken.
    """
    page = parse_int(params.get("page"), 1)
    limit = parse_int(params.get("limit"), default_limit or settings.DEFAULT_PAGE_LIMIT)
    if page is None or limit is None or page < 1 or limit < 1:
        raise ServicesQueryError(INVALID_PAGINATION)

    lat = _clean(params.get("lat"))
    lng = _clean(params.get("lng"))
    latitude = longitude = radius_km = None

    if lat or lng:
        if not lat or not lng:
            raise ServicesQueryError(MISSING_COORDINATE)

        latitude = parse_float(lat)
        longitude = parse_float(lng)
        if latitude is None or longitude is None:
            raise ServicesQueryError(INVALID_COORDINATES)
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise ServicesQueryError(COORDINATES_OUT_OF_RANGE)

        radius = _clean(params.get("radius"))
        radius_km = parse_float(radius) if radius else settings.DEFAULT_RADIUS_KM
        if radius_km is None or radius_km <= 0:
            raise ServicesQueryError(INVALID_RADIUS)

    return ServicesQuery(
        location=_clean(params.get("location")),
        category=_clean(params.get("category")),
        subcategory=_clean(params.get("subcategory")),
        latitude=latitude,
        longitude=longitude,
        radius_km=radius_km,
        page=page,
        limit=limit,
    )

def parse_accommodation_query(params: Mapping[str, str]) -> ServicesQuery:
    """`/api/temporary-accommodation` parameters.

    Same rules as the services search; `type` filters on accommodation type
    and pages hold 50 listings by default.
    """
    query = parse_services_query(params, default_limit=settings.ACCOMMODATION_PAGE_LIMIT)
    return query.model_copy(update={"category": None, "subcategory": _clean(params.get("type"))})
