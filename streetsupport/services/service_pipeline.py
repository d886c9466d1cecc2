"""Aggregation pipelines over the `ProvidedServices` collection.

Everything here is a pure function returning a list of stages, so the
pipelines can be asserted on directly in tests.
"""
import re
from typing import Any, Dict, List, Optional

from streetsupport.core.config import settings
from streetsupport.models.dto import ServicesQuery

Stage = Dict[str, Any]

# Fields the API response is built from. Anything else (audit fields,
# notes, tags, embedded copies of the provider) stays in the database.
SERVICE_PROJECTION: Dict[str, int] = {
    "_id": 1,
    "Key": 1,
    "name": 1,
    "description": 1,
    "ParentCategoryKey": 1,
    "SubCategoryKey": 1,
    "ServiceProviderKey": 1,
    "organisation": 1,
    "Address.Street": 1,
    "Address.Street1": 1,
    "Address.Street2": 1,
    "Address.Street3": 1,
    "Address.City": 1,
    "Address.Postcode": 1,
    "Address.Location": 1,
    "OpeningTimes": 1,
    "ClientGroups": 1,
    "IsAppointmentOnly": 1,
    "IsTelephoneService": 1,
    "IsOpen247": 1,
    "distance": 1,
}

PROVIDER_FIELDS: Dict[str, int] = {
    "_id": 0,
    "Key": 1,
    "Name": 1,
    "IsVerified": 1,
    "ShortDescription": 1,
}

def prefix_regex(value: str) -> Dict[str, str]:
    """Case-insensitive "starts with" on user input, with regex syntax escaped."""
    return {"$regex": f"^{re.escape(value)}", "$options": "i"}

def build_service_filter(query: ServicesQuery, include_location: bool = True) -> Dict[str, Any]:
    match: Dict[str, Any] = {"IsPublished": True}
    if include_location and query.location:
        match["Address.City"] = prefix_regex(query.location)
    if query.category:
        match["ParentCategoryKey"] = prefix_regex(query.category)
    if query.subcategory:
        match["SubCategoryKey"] = prefix_regex(query.subcategory)
    return match

def build_filter_stage(query: ServicesQuery) -> Stage:
    """`$geoNear` when coordinates are given, `$match` otherwise.

    `$geoNear` has to be the first stage, so the published/category filters
    ride along as its embedded `query`. City is ignored for geo searches.
    """
    if query.is_geospatial:
        radius_km = query.radius_km if query.radius_km is not None else settings.DEFAULT_RADIUS_KM
        return {
            "$geoNear": {
                "near": {"type": "Point", "coordinates": [query.longitude, query.latitude]},
                "distanceField": "distance",
                "maxDistance": radius_km * 1000,
                "spherical": True,
                "query": build_service_filter(query, include_location=False),
            }
        }
    return {"$match": build_service_filter(query)}

def build_enrichment_stages() -> List[Stage]:
    """Join the provider, flatten it to one optional object, project the output shape."""
    return [
        {
            "$lookup": {
                "from": settings.PROVIDERS_COLLECTION,
                "let": {"providerKey": "$ServiceProviderKey"},
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$Key", "$$providerKey"]}}},
                    {"$project": PROVIDER_FIELDS},
                ],
                "as": "provider",
            }
        },
        {"$unwind": {"path": "$provider", "preserveNullAndEmptyArrays": True}},
        {
            "$addFields": {
                "organisation": {"$ifNull": ["$provider", None]},
                "name": {"$ifNull": ["$Title", ""]},
                "description": {"$ifNull": ["$Description", ""]},
            }
        },
        {"$project": SERVICE_PROJECTION},
    ]

def build_services_pipeline(query: ServicesQuery, skip: int, limit: int) -> List[Stage]:
    pipeline = [build_filter_stage(query)]
    pipeline.extend(build_enrichment_stages())
    pipeline.append({"$skip": skip})
    pipeline.append({"$limit": limit})
    return pipeline

def build_count_pipeline(query: ServicesQuery) -> List[Stage]:
    """Total matches. Joins and pagination never change the count, so they are left out."""
    return [build_filter_stage(query), {"$count": "total"}]

def build_provider_services_pipeline(provider_key: str, limit: Optional[int] = None) -> List[Stage]:
    pipeline: List[Stage] = [{"$match": {"ServiceProviderKey": provider_key, "IsPublished": True}}]
    pipeline.extend(build_enrichment_stages())
    if limit is not None:
        pipeline.append({"$limit": limit})
    return pipeline
