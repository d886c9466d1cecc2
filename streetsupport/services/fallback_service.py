import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from streetsupport.core.config import settings
from streetsupport.models.dto import ServicesQuery
from streetsupport.utils.haversine import haversine_metres

logger = logging.getLogger(__name__)

# --- Fallback file models ---

class FallbackService(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    category: str = ""
    sub_category: str = Field("", alias="subCategory")
    description: str = ""
    city: str = ""
    postcode: str = ""
    open_times: List[Dict[str, Any]] = Field(default_factory=list, alias="openTimes")
    client_groups: List[str] = Field(default_factory=list, alias="clientGroups")
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class FallbackProvider(BaseModel):
    name: str
    slug: str
    verified: bool = False
    services: List[FallbackService] = Field(default_factory=list)

def _starts_with(value: str, prefix: Optional[str]) -> bool:
    return not prefix or value.lower().startswith(prefix.lower())

class FallbackDataset:
    """Static copy of the service directory, served when MongoDB is unreachable.

    - Loads the providers file into memory once.
    - ``search`` mirrors the aggregation pipeline's filters and output shape,
      with Haversine standing in for ``$geoNear``.
    """

    def __init__(self, file_path: str = settings.FALLBACK_DATA_PATH):
        self.file_path = file_path
        self.providers: List[FallbackProvider] = []
        self._load()

    def _load(self):
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.providers = [FallbackProvider.model_validate(item) for item in data]
            logger.info(f"Loaded {self.service_count} fallback services from {len(self.providers)} providers.")
        except FileNotFoundError:
            logger.error(f"Fallback data file not found at: {self.file_path}")
            self.providers = []
        except (ValueError, ValidationError) as e:
            logger.error(f"Error loading or validating fallback data: {e}")
            self.providers = []

    @property
    def service_count(self) -> int:
        return sum(len(provider.services) for provider in self.providers)

    def _to_document(self, provider: FallbackProvider, service: FallbackService) -> Dict[str, Any]:
        """Shape a fallback entry like a row from the services aggregation."""
        document: Dict[str, Any] = {
            "_id": service.id,
            "Key": service.id,
            "name": service.name,
            "description": service.description,
            "ParentCategoryKey": service.category,
            "SubCategoryKey": service.sub_category,
            "ServiceProviderKey": provider.slug,
            "organisation": {"Key": provider.slug, "Name": provider.name, "IsVerified": provider.verified},
            "Address": {"City": service.city, "Postcode": service.postcode},
            "OpeningTimes": service.open_times,
            "ClientGroups": service.client_groups,
        }
        if service.latitude is not None and service.longitude is not None:
            document["Address"]["Location"] = {
                "type": "Point",
                "coordinates": [service.longitude, service.latitude],
            }
        return document

    def search(self, query: ServicesQuery) -> List[Dict[str, Any]]:
        """Every matching service, nearest first when searching by coordinates."""
        results: List[Dict[str, Any]] = []
        for provider in self.providers:
            for service in provider.services:
                if not _starts_with(service.category, query.category):
                    continue
                if not _starts_with(service.sub_category, query.subcategory):
                    continue
                if not query.is_geospatial:
                    if _starts_with(service.city, query.location):
                        results.append(self._to_document(provider, service))
                    continue

                # No coordinates means no distance: left out of geo searches
                if service.latitude is None or service.longitude is None:
                    continue
                distance_m = haversine_metres(query.latitude, query.longitude, service.latitude, service.longitude)
                radius_km = query.radius_km if query.radius_km is not None else settings.DEFAULT_RADIUS_KM
                if distance_m <= radius_km * 1000:
                    document = self._to_document(provider, service)
                    document["distance"] = distance_m
                    results.append(document)

        if query.is_geospatial:
            results.sort(key=lambda document: document["distance"])
        return results
