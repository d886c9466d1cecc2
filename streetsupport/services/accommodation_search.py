"""Standalone temporary accommodation search (`/api/temporary-accommodation`).

Unlike Find Help, this search has no category gate and no fallback dataset:
a database failure is returned to the route as a ``Failure``.
"""
from typing import List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase

from streetsupport.core.config import query_cache_ttl
from streetsupport.models.dto import (
    AccommodationFilters,
    AccommodationListResponse,
    AccommodationListing,
    Pagination,
    SearchCoordinates,
    ServicesQuery,
)
from streetsupport.models.results import Failure, FetchResult, Success
from streetsupport.services.accommodation_service import fetch_accommodation
from streetsupport.services.query_cache import QueryCache
from streetsupport.services.service_search import (
    AccommodationRecordResult,
    SearchOutcome,
    filter_accommodation_by_radius,
)
from streetsupport.utils.haversine import metres_to_km

logger = structlog.get_logger(__name__)

CACHE_COLLECTION = "temporary-accommodation"

def to_listing(record: AccommodationRecordResult) -> AccommodationListing:
    distance = metres_to_km(record.distance_m) if record.distance_m is not None else None
    return AccommodationListing(**dict(record.data), distance=distance)

def search_filters(query: ServicesQuery) -> AccommodationFilters:
    coordinates = None
    if query.is_geospatial:
        coordinates = SearchCoordinates(lat=query.latitude, lng=query.longitude, radius=query.radius_km)
    return AccommodationFilters(
        location=query.location,
        accommodation_type=query.subcategory,
        coordinates=coordinates,
    )

class AccommodationSearch:
    """Paged, cached listing of temporary accommodation, nearest first when geolocated."""

    def __init__(self, db: Optional[AsyncIOMotorDatabase], cache: QueryCache, cache_ttl: Optional[int] = None):
        self.db = db
        self.cache = cache
        self.cache_ttl = cache_ttl if cache_ttl is not None else query_cache_ttl()

    async def search(self, query: ServicesQuery) -> FetchResult[SearchOutcome]:
        cache_key = self.cache.generate_key(query.cache_params(CACHE_COLLECTION))
        cached = await self.cache.get(cache_key)
        if cached is not None:
            pagination = cached["pagination"]
            return Success(SearchOutcome(
                cached, cache_key, True, pagination["totalItems"], pagination["currentPage"]
            ))

        result = await fetch_accommodation(
            self.db,
            location=query.location,
            subcategory=query.subcategory,
            latitude=query.latitude,
            longitude=query.longitude,
            radius_km=query.radius_km,
        )
        if isinstance(result, Failure):
            return result

        records: List[AccommodationRecordResult] = filter_accommodation_by_radius(result.value, query)
        if query.is_geospatial:
            records.sort(key=lambda record: record.distance_m)
        page = records[query.skip:query.skip + query.limit]

        response = AccommodationListResponse(
            data=[to_listing(record) for record in page],
            pagination=Pagination.for_page(query.page, query.limit, len(records)),
            filters=search_filters(query),
        )
        payload = response.model_dump(by_alias=True, mode="json")
        await self.cache.set(cache_key, payload, self.cache_ttl)

        logger.info("accommodation_search", total=len(records), page=query.page, geospatial=query.is_geospatial)
        return Success(SearchOutcome(payload, cache_key, False, len(records), query.page))
