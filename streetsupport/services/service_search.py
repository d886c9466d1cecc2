"""Find Help search: services and temporary accommodation in one paged list.

Flow for a cache miss:

1. The services aggregation and the accommodation loader run concurrently.
2. If the aggregation fails, the static fallback dataset stands in for it.
3. Accommodation rows are re-checked against the radius with Haversine.
4. Both sources are merged, ordered by distance, paged, and serialised.

Distances travel in metres (the unit `$geoNear` reports) until
serialisation, where every source is converted to kilometres, 2dp.
"""
import asyncio
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase

from streetsupport.core.config import settings, query_cache_ttl
from streetsupport.models.dto import (
    AccommodationData,
    AccommodationSummary,
    GeoPoint,
    OrganisationSummary,
    ResultAddress,
    ServicesQuery,
    ServicesResponse,
    UnifiedResult,
)
from streetsupport.models.results import Failure, FetchError, FetchResult, Success
from streetsupport.services.accommodation_service import load_filtered_accommodation_data
from streetsupport.services.fallback_service import FallbackDataset
from streetsupport.services.query_cache import QueryCache
from streetsupport.services.service_pipeline import build_count_pipeline, build_services_pipeline
from streetsupport.utils.haversine import haversine_metres, metres_to_km
from streetsupport.utils.html_decode import decode_text

logger = structlog.get_logger(__name__)

# --- Search records ---

@dataclass(frozen=True)
class ServiceRecordResult:
    """A row from the services aggregation (or the fallback dataset)."""
    document: Dict[str, Any]
    source_type: ClassVar[str] = "service"

    @property
    def distance_m(self) -> Optional[float]:
        return self.document.get("distance")

@dataclass(frozen=True)
class AccommodationRecordResult:
    data: AccommodationData
    distance_m: Optional[float] = None
    source_type: ClassVar[str] = "accommodation"

SearchRecord = Union[ServiceRecordResult, AccommodationRecordResult]

@dataclass(frozen=True)
class SearchOutcome:
    """A serialised response body plus what the response headers are built from."""
    payload: Dict[str, Any]
    cache_key: str
    cache_hit: bool
    total: int
    page: int

# --- Mapping to the unified view ---

def _km(distance_m: Optional[float]) -> Optional[float]:
    return metres_to_km(distance_m) if distance_m is not None else None

def service_to_unified(record: ServiceRecordResult) -> UnifiedResult:
    document = record.document
    organisation = document.get("organisation") or None
    address = document.get("Address") or {}
    location = address.get("Location") or {}
    coordinates = location.get("coordinates") or []

    # Joined documents carry the provider object, fallback rows may only have the key
    organisation_slug = (organisation or {}).get("Key") or document.get("ServiceProviderKey") or ""

    return UnifiedResult(
        id=str(document.get("Key") or document.get("_id", "")),
        name=decode_text(document.get("name") or document.get("Title")),
        description=decode_text(document.get("description") or document.get("Description")),
        category=document.get("ParentCategoryKey") or "",
        subcategory=document.get("SubCategoryKey") or "",
        organisation=OrganisationSummary(
            name=decode_text(organisation.get("Name")),
            slug=organisation_slug,
            is_verified=bool(organisation.get("IsVerified")),
        ) if organisation else None,
        organisation_slug=organisation_slug,
        address=ResultAddress(
            street=address.get("Street") or "",
            street1=address.get("Street1") or "",
            street2=address.get("Street2") or "",
            street3=address.get("Street3") or "",
            city=address.get("City") or "",
            postcode=address.get("Postcode") or "",
        ),
        location=GeoPoint(coordinates=list(coordinates)) if len(coordinates) >= 2 else None,
        open_times=document.get("OpeningTimes") or [],
        client_groups=document.get("ClientGroups") or [],
        is_appointment_only=bool(document.get("IsAppointmentOnly")),
        is_telephone_service=bool(document.get("IsTelephoneService")),
        is_open247=bool(document.get("IsOpen247")),
        distance=_km(record.distance_m),
        source_type="service",
    )

def accommodation_to_unified(record: AccommodationRecordResult) -> UnifiedResult:
    # Text fields were decoded when the document was normalised
    data = record.data
    return UnifiedResult(
        id=data.id,
        name=data.name,
        description=data.description or data.synopsis,
        category=settings.ACCOMMODATION_CATEGORY,
        subcategory=data.accommodation.type or "other",
        organisation=OrganisationSummary(
            name=data.service_provider_name,
            slug=data.service_provider_id,
            is_verified=data.is_verified,
        ),
        organisation_slug=data.service_provider_id,
        address=ResultAddress(
            street1=data.address.street1,
            street2=data.address.street2,
            street3=data.address.street3,
            city=data.address.city,
            postcode=data.address.postcode,
        ),
        location=GeoPoint(coordinates=[data.address.longitude, data.address.latitude]),
        distance=_km(record.distance_m),
        source_type="accommodation",
        accommodation_data=AccommodationSummary(
            synopsis=data.synopsis,
            accommodation=data.accommodation,
            features=data.features,
            resident_criteria=data.resident_criteria,
            support=data.support,
            contact=data.contact,
        ),
    )

def to_unified(record: SearchRecord) -> UnifiedResult:
    if isinstance(record, AccommodationRecordResult):
        return accommodation_to_unified(record)
    return service_to_unified(record)

# --- Merge ---

def _compare_distance(a: SearchRecord, b: SearchRecord) -> int:
    """Order by distance only when both sides have one; otherwise keep input order."""
    if a.distance_m is None or b.distance_m is None:
        return 0
    return (a.distance_m > b.distance_m) - (a.distance_m < b.distance_m)

def filter_accommodation_by_radius(
    rows: List[AccommodationData], query: ServicesQuery
) -> List[AccommodationRecordResult]:
    """Haversine re-check of the database's `$geoWithin`, attaching a distance in metres."""
    if not query.is_geospatial:
        return [AccommodationRecordResult(row) for row in rows]

    radius_km = query.radius_km if query.radius_km is not None else settings.DEFAULT_RADIUS_KM
    records = []
    for row in rows:
        distance_m = haversine_metres(
            query.latitude, query.longitude, row.address.latitude, row.address.longitude
        )
        if distance_m <= radius_km * 1000:
            records.append(AccommodationRecordResult(row, distance_m))
    return records

def merge_records(
    services: List[ServiceRecordResult], accommodation: List[AccommodationRecordResult]
) -> List[SearchRecord]:
    combined: List[SearchRecord] = [*services, *accommodation]
    return sorted(combined, key=cmp_to_key(_compare_distance))

def paginate(records: List[SearchRecord], query: ServicesQuery) -> List[SearchRecord]:
    return records[query.skip:query.skip + query.limit]

# --- Search service ---

class ServiceSearch:
    """Runs `/api/services` searches against MongoDB with cache and fallback."""

    def __init__(
        self,
        db: Optional[AsyncIOMotorDatabase],
        cache: QueryCache,
        fallback: FallbackDataset,
        cache_ttl: Optional[int] = None,
    ):
        self.db = db
        self.cache = cache
        self.fallback = fallback
        self.cache_ttl = cache_ttl if cache_ttl is not None else query_cache_ttl()

    async def fetch_services(
        self, query: ServicesQuery, skip: int, limit: int
    ) -> FetchResult[Tuple[List[Dict[str, Any]], int]]:
        """One page of aggregated services plus the unpaged match count."""
        if self.db is None:
            return Failure(FetchError("services", "database unavailable"))
        collection = self.db[settings.SERVICES_COLLECTION]
        try:
            documents, counts = await asyncio.gather(
                collection.aggregate(build_services_pipeline(query, skip, limit)).to_list(length=None),
                collection.aggregate(build_count_pipeline(query)).to_list(length=None),
            )
        except Exception as e:
            return Failure(FetchError("services", str(e)))
        total = counts[0]["total"] if counts else 0
        return Success((documents, total))

    async def search(self, query: ServicesQuery) -> SearchOutcome:
        cache_key = self.cache.generate_key(query.cache_params())
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return SearchOutcome(cached, cache_key, True, cached["total"], cached["page"])

        # Paging happens after the merge, so the services query has to
        # return everything up to the end of the requested page.
        window = query.page * query.limit
        primary, accommodation = await asyncio.gather(
            self.fetch_services(query, 0, window),
            load_filtered_accommodation_data(
                self.db,
                location=query.location,
                category=query.category,
                subcategory=query.subcategory,
                latitude=query.latitude,
                longitude=query.longitude,
                radius_km=query.radius_km,
            ),
        )

        if isinstance(primary, Success):
            documents, primary_total = primary.value
            from_fallback = False
        else:
            logger.warning("services_fallback", source=primary.error.source, error=primary.error.message)
            documents = self.fallback.search(query)
            primary_total = len(documents)
            documents = documents[:window]
            from_fallback = True

        accommodation_records = filter_accommodation_by_radius(accommodation, query)
        merged = merge_records([ServiceRecordResult(doc) for doc in documents], accommodation_records)

        response = ServicesResponse(
            total=primary_total + len(accommodation_records),
            page=query.page,
            limit=query.limit,
            results=[to_unified(record) for record in paginate(merged, query)],
        )
        payload = response.model_dump(by_alias=True, mode="json")

        # Fallback answers are not cached so the next request retries the database
        if not from_fallback:
            await self.cache.set(cache_key, payload, self.cache_ttl)
        return SearchOutcome(payload, cache_key, False, response.total, response.page)
