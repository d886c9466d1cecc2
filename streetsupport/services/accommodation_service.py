"""Temporary accommodation listings from the `TemporaryAccommodation` collection.

Nothing here raises. A database problem is logged, then `fetch_accommodation`
returns a `Failure` and the Find Help loaders return an empty list, so
accommodation can never take down a services search.
"""
from typing import Any, Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase

from streetsupport.core.config import settings
from streetsupport.models.dto import (
    AccommodationAddress,
    AccommodationContact,
    AccommodationData,
    AccommodationDetails,
    AccommodationFeatures,
    ResidentCriteria,
    SupportProvided,
    TriState,
)
from streetsupport.models.results import Failure, FetchError, FetchResult, Success
from streetsupport.services.service_pipeline import prefix_regex
from streetsupport.utils.haversine import EARTH_RADIUS_KM
from streetsupport.utils.html_decode import decode_text

logger = structlog.get_logger(__name__)

# Three visibility conventions coexist in the data: IsPubliclyVisible,
# IsPublished, and older records carrying neither flag.
VISIBILITY_CLAUSE: Dict[str, Any] = {
    "$or": [
        {"GeneralInfo.IsPubliclyVisible": True},
        {"GeneralInfo.IsPublished": True},
        {
            "GeneralInfo.IsPublished": {"$exists": False},
            "GeneralInfo.IsPubliclyVisible": {"$ne": False},
        },
    ]
}

PROVIDER_ID_CLAUSE: Dict[str, Any] = {
    "GeneralInfo.ServiceProviderId": {
        "$exists": True,
        "$nin": [None, ""],
        "$type": "string",
    }
}

# output field -> FeaturesWithDiscretionary field
FEATURE_FIELDS = {
    "accepts_housing_benefit": "AcceptsHousingBenefit",
    "accepts_pets": "AcceptsPets",
    "accepts_couples": "AcceptsCouples",
    "has_disabled_access": "HasDisabledAccess",
    "is_suitable_for_women": "IsSuitableForWomen",
    "is_suitable_for_young_people": "IsSuitableForYoungPeople",
    "has_single_rooms": "HasSingleRooms",
    "has_shared_rooms": "HasSharedRooms",
    "has_shower_bathroom_facilities": "HasShowerBathroomFacilities",
    "has_access_to_kitchen": "HasAccessToKitchen",
    "has_laundry_facilities": "HasLaundryFacilities",
    "has_lounge": "HasLounge",
    "allows_visitors": "AllowsVisitors",
    "has_on_site_manager": "HasOnSiteManager",
}

RESIDENT_CRITERIA_FIELDS = {
    "accepts_men": "AcceptsMen",
    "accepts_women": "AcceptsWomen",
    "accepts_couples": "AcceptsCouples",
    "accepts_young_people": "AcceptsYoungPeople",
    "accepts_families": "AcceptsFamilies",
    "accepts_benefits_claimants": "AcceptsBenefitsClaimants",
}


def is_accommodation_category(category: Optional[str]) -> bool:
    return bool(category) and category.lower() == settings.ACCOMMODATION_CATEGORY


def build_accommodation_query(
    location: Optional[str] = None,
    subcategory: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius_km: Optional[float] = None,
) -> Dict[str, Any]:
    clauses: List[Dict[str, Any]] = [PROVIDER_ID_CLAUSE, VISIBILITY_CLAUSE]

    if location:
        clauses.append({"Address.City": prefix_regex(location)})

    if subcategory:
        clauses.append({"GeneralInfo.AccommodationType": prefix_regex(subcategory)})

    if latitude is not None and longitude is not None and radius_km is not None:
        clauses.append({
            "Address.Location": {
                "$geoWithin": {
                    "$centerSphere": [[longitude, latitude], radius_km / EARTH_RADIUS_KM]
                }
            }
        })

    return {"$and": clauses}


def _group(doc: Dict[str, Any], name: str) -> Dict[str, Any]:
    return doc.get(name) or {}


def _coordinates(address: Dict[str, Any]) -> List[float]:
    location = address.get("Location") or {}
    coordinates = location.get("coordinates") or []
    return coordinates if len(coordinates) >= 2 else []


def transform_accommodation_document(doc: Dict[str, Any]) -> AccommodationData:
    """Flatten a raw document, giving every field a defined value."""
    general = _group(doc, "GeneralInfo")
    pricing = _group(doc, "PricingAndRequirementsInfo")
    contact = _group(doc, "ContactInformation")
    address = _group(doc, "Address")
    features = _group(doc, "FeaturesWithDiscretionary")
    criteria = _group(doc, "ResidentCriteriaInfo")
    support = _group(doc, "SupportProvidedInfo")
    coordinates = _coordinates(address)

    return AccommodationData(
        id=str(doc.get("_id", "")),
        name=decode_text(general.get("Name")),
        synopsis=decode_text(general.get("Synopsis")),
        description=decode_text(general.get("Description")),
        service_provider_id=general.get("ServiceProviderId") or "",
        service_provider_name=decode_text(general.get("ServiceProviderName")),
        is_verified=bool(general.get("IsVerified")),
        address=AccommodationAddress(
            street1=decode_text(address.get("Street1")),
            street2=decode_text(address.get("Street2")),
            street3=decode_text(address.get("Street3")),
            city=decode_text(address.get("City")),
            postcode=decode_text(address.get("Postcode")),
            latitude=(coordinates[1] or 0) if coordinates else 0,
            longitude=(coordinates[0] or 0) if coordinates else 0,
            associated_city_id=address.get("AssociatedCityId") or "",
        ),
        contact=AccommodationContact(
            name=decode_text(contact.get("Name")),
            telephone=decode_text(contact.get("Telephone")),
            email=decode_text(contact.get("Email")),
            additional_info=decode_text(contact.get("AdditionalInfo")),
        ),
        accommodation=AccommodationDetails(
            type=general.get("AccommodationType") or "other",
            is_open_access=bool(general.get("IsOpenAccess")),
            referral_required=bool(pricing.get("ReferralIsRequired")),
            referral_notes=decode_text(pricing.get("ReferralNotes")),
            price=str(pricing.get("Price") or "0"),
            food_included=TriState.coalesce(pricing.get("FoodIsIncluded")),
            availability_of_meals=decode_text(pricing.get("AvailabilityOfMeals")),
        ),
        features=AccommodationFeatures(
            additional_features=decode_text(features.get("AdditionalFeatures")),
            **{
                field: TriState.coalesce(features.get(source))
                for field, source in FEATURE_FIELDS.items()
            },
        ),
        resident_criteria=ResidentCriteria(**{
            field: bool(criteria.get(source))
            for field, source in RESIDENT_CRITERIA_FIELDS.items()
        }),
        support=SupportProvided(
            has_on_site_manager=TriState.coalesce(support.get("HasOnSiteManager")),
            support_offered=list(support.get("SupportOffered") or []),
            support_info=decode_text(support.get("SupportInfo")),
        ),
    )


async def _find_accommodation(
    db: Optional[AsyncIOMotorDatabase], query: Dict[str, Any]
) -> List[AccommodationData]:
    if db is None:
        raise RuntimeError("database unavailable")
    cursor = db[settings.ACCOMMODATION_COLLECTION].find(query)
    documents = await cursor.to_list(length=None)
    return [transform_accommodation_document(doc) for doc in documents]


async def fetch_accommodation(
    db: Optional[AsyncIOMotorDatabase],
    location: Optional[str] = None,
    subcategory: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius_km: Optional[float] = None,
) -> FetchResult[List[AccommodationData]]:
    """Every visible listing matching the filters, with no category gate."""
    query = build_accommodation_query(location, subcategory, latitude, longitude, radius_km)
    try:
        return Success(await _find_accommodation(db, query))
    except Exception as e:
        logger.error("accommodation_load_failed", error=str(e), location=location, subcategory=subcategory)
        return Failure(FetchError("accommodation", str(e)))


async def load_filtered_accommodation_data(
    db: Optional[AsyncIOMotorDatabase],
    location: Optional[str] = None,
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius_km: Optional[float] = None,
) -> List[AccommodationData]:
    """Accommodation matching a Find Help search. Empty unless the category is accommodation."""
    if not is_accommodation_category(category):
        return []

    result = await fetch_accommodation(db, location, subcategory, latitude, longitude, radius_km)
    return result.value if isinstance(result, Success) else []


async def load_accommodation_for_provider(
    db: Optional[AsyncIOMotorDatabase], service_provider_id: str
) -> List[AccommodationData]:
    """All visible accommodation for one organisation, for its detail page."""
    query = {"GeneralInfo.ServiceProviderId": service_provider_id, **VISIBILITY_CLAUSE}
    try:
        return await _find_accommodation(db, query)
    except Exception as e:
        logger.error("provider_accommodation_load_failed", error=str(e), service_provider_id=service_provider_id)
        return []
