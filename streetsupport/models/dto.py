import math
from enum import IntEnum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional

class ApiModel(BaseModel):
    """Base for everything serialised to the frontend: camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# --- Query parameters ---

class ServicesQuery(BaseModel):
    """Validated `/api/services` query parameters."""
    location: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: Optional[float] = None
    page: int = 1
    limit: int = 20

    @property
    def is_geospatial(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def cache_params(self, collection: str = "services") -> Dict[str, Any]:
        return {
            "collection": collection,
            "location": self.location,
            "category": self.category,
            "subcategory": self.subcategory,
            "lat": self.latitude,
            "lng": self.longitude,
            "radius": self.radius_km,
            "page": self.page,
            "limit": self.limit,
        }

# --- Temporary accommodation ---

class TriState(IntEnum):
    """Discretionary answer stored as 0/1/2.

    Falsy stored values (missing, null, 0) are read back as UNSPECIFIED,
    so a stored NO never survives normalisation. Frontend filters rely on it.
    Values outside 0-2 are also read as UNSPECIFIED rather than passed through.
    """
    NO = 0
    YES = 1
    UNSPECIFIED = 2

    @classmethod
    def coalesce(cls, value: Any) -> "TriState":
        if not value:
            return cls.UNSPECIFIED
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.UNSPECIFIED

class AccommodationAddress(ApiModel):
    street1: str = ""
    street2: str = ""
    street3: str = ""
    city: str = ""
    postcode: str = ""
    latitude: float = 0
    longitude: float = 0
    associated_city_id: str = ""

class AccommodationContact(ApiModel):
    name: str = ""
    telephone: str = ""
    email: str = ""
    additional_info: str = ""

class AccommodationDetails(ApiModel):
    type: str = "other"
    is_open_access: bool = False
    referral_required: bool = False
    referral_notes: str = ""
    price: str = "0"
    food_included: TriState = TriState.UNSPECIFIED
    availability_of_meals: str = ""

class AccommodationFeatures(ApiModel):
    accepts_housing_benefit: TriState = TriState.UNSPECIFIED
    accepts_pets: TriState = TriState.UNSPECIFIED
    accepts_couples: TriState = TriState.UNSPECIFIED
    has_disabled_access: TriState = TriState.UNSPECIFIED
    is_suitable_for_women: TriState = TriState.UNSPECIFIED
    is_suitable_for_young_people: TriState = TriState.UNSPECIFIED
    has_single_rooms: TriState = TriState.UNSPECIFIED
    has_shared_rooms: TriState = TriState.UNSPECIFIED
    has_shower_bathroom_facilities: TriState = TriState.UNSPECIFIED
    has_access_to_kitchen: TriState = TriState.UNSPECIFIED
    has_laundry_facilities: TriState = TriState.UNSPECIFIED
    has_lounge: TriState = TriState.UNSPECIFIED
    allows_visitors: TriState = TriState.UNSPECIFIED
    has_on_site_manager: TriState = TriState.UNSPECIFIED
    additional_features: str = ""

class ResidentCriteria(ApiModel):
    accepts_men: bool = False
    accepts_women: bool = False
    accepts_couples: bool = False
    accepts_young_people: bool = False
    accepts_families: bool = False
    accepts_benefits_claimants: bool = False

class SupportProvided(ApiModel):
    has_on_site_manager: TriState = TriState.UNSPECIFIED
    support_offered: List[str] = Field(default_factory=list)
    support_info: str = ""

class AccommodationData(ApiModel):
    """A `TemporaryAccommodation` document flattened for display."""
    id: str
    name: str = ""
    synopsis: str = ""
    description: str = ""
    service_provider_id: str = ""
    service_provider_name: str = ""
    is_verified: bool = False
    address: AccommodationAddress = Field(default_factory=AccommodationAddress)
    contact: AccommodationContact = Field(default_factory=AccommodationContact)
    accommodation: AccommodationDetails = Field(default_factory=AccommodationDetails)
    features: AccommodationFeatures = Field(default_factory=AccommodationFeatures)
    resident_criteria: ResidentCriteria = Field(default_factory=ResidentCriteria)
    support: SupportProvided = Field(default_factory=SupportProvided)

class AccommodationSummary(ApiModel):
    """Accommodation-only fields carried on a unified result."""
    synopsis: str = ""
    accommodation: AccommodationDetails
    features: AccommodationFeatures
    resident_criteria: ResidentCriteria
    support: SupportProvided
    contact: AccommodationContact

# --- Unified search results ---

class OrganisationSummary(ApiModel):
    name: str = ""
    slug: str = ""
    is_verified: bool = False

class ResultAddress(ApiModel):
    street: str = ""
    street1: str = ""
    street2: str = ""
    street3: str = ""
    city: str = ""
    postcode: str = ""

class GeoPoint(ApiModel):
    type: str = "Point"
    coordinates: List[float] = Field(default_factory=list, description="[longitude, latitude]")

class UnifiedResult(ApiModel):
    """One `/api/services` result, whichever collection it came from."""
    id: str
    name: str = ""
    description: str = ""
    category: str = ""
    subcategory: str = ""
    organisation: Optional[OrganisationSummary] = None
    organisation_slug: str = ""
    address: ResultAddress = Field(default_factory=ResultAddress)
    location: Optional[GeoPoint] = None
    open_times: List[Dict[str, Any]] = Field(default_factory=list)
    client_groups: List[str] = Field(default_factory=list)
    is_appointment_only: bool = False
    is_telephone_service: bool = False
    is_open247: bool = Field(False, alias="isOpen247")
    distance: Optional[float] = Field(None, description="Kilometres from the search point, 2dp.")
    source_type: Literal["service", "accommodation"] = "service"
    accommodation_data: Optional[AccommodationSummary] = None

class ServicesResponse(ApiModel):
    status: str = "success"
    total: int
    page: int
    limit: int
    results: List[UnifiedResult]

# --- Temporary accommodation search ---

class AccommodationListing(AccommodationData):
    distance: Optional[float] = Field(None, description="Kilometres from the search point, 2dp.")

class Pagination(ApiModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool
    next_page: Optional[int] = None
    previous_page: Optional[int] = None

    @classmethod
    def for_page(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit)
        has_next = page < total_pages
        has_previous = page > 1
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            items_per_page=limit,
            has_next_page=has_next,
            has_previous_page=has_previous,
            next_page=page + 1 if has_next else None,
            previous_page=page - 1 if has_previous else None,
        )

class SearchCoordinates(ApiModel):
    lat: float
    lng: float
    radius: float

class AccommodationFilters(ApiModel):
    location: Optional[str] = None
    accommodation_type: Optional[str] = None
    coordinates: Optional[SearchCoordinates] = None

class AccommodationListResponse(ApiModel):
    status: str = "success"
    data: List[AccommodationListing]
    pagination: Pagination
    filters: AccommodationFilters

# --- Organisations ---

class ProviderContact(ApiModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None

class ProviderAddress(ApiModel):
    """A `ServiceProviderAddresses` row."""
    key: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    postcode: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class ProviderDetail(ApiModel):
    key: str
    name: str = ""
    short_description: str = ""
    is_verified: bool = False
    tags: List[str] = Field(default_factory=list)
    contact: ProviderContact = Field(default_factory=ProviderContact)
    locations: List[str] = Field(default_factory=list)
    addresses: List[ProviderAddress] = Field(default_factory=list)
    services: List[UnifiedResult] = Field(default_factory=list)
    accommodation: List[AccommodationData] = Field(default_factory=list)

class ProviderDetailResponse(ApiModel):
    status: str = "success"
    data: ProviderDetail

# --- Error Response Model ---

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    status: str = "error"
    message: str = Field(..., description="A human-readable explanation.")
